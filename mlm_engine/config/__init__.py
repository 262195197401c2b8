"""Process settings, database engine and admin configuration documents."""
