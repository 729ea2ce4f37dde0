"""Command line interface for pacdef"""
