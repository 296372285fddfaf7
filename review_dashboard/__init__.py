"""Data layer feeding the correspondence review dashboard and its export."""
