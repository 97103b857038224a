"""Network side of the menu sync client: REST, broadcast channel, spreadsheets and CLI."""
