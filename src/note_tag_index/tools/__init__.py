"""コマンドラインツール."""
