"""HTTP API for orders stored in Redis."""