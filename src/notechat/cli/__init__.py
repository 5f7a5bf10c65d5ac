"""notechat command-line interface."""
