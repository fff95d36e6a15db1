"""aliasync command line interface."""
