"""Front desk console: live walk-in queue, notifications and payments."""
