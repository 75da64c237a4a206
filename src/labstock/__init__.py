"""labstock - track lab equipment and who has borrowed it."""
