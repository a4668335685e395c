#!/usr/bin/env python3
"""
Main entry point for the OAuth session command line tool
"""

from oauth_session.main import run

if __name__ == "__main__":
    run()
