"""
CLI session settings.

Set by the root callback in aliasync.cli.main and read by the commands.
"""

# Output format for reports: table, json or yaml
OUTPUT_FORMAT: str = "table"

# Config file applied for this invocation (empty = none found)
CONFIG_FILE: str = ""
