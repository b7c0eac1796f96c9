#!/usr/bin/env python3
"""
Traffic Config Manager - Main Entry Point

This is the main entry point for traffic-ctl.
It can be run directly or imported as a module.
"""

from traffic_config_manager.cli.main import main

if __name__ == "__main__":
    main()
