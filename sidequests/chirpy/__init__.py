"""HTTP API for users and short posts, stored in SQLite, with argon2id password hashing."""