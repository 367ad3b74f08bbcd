"""Property graph storage backed by SQLite."""