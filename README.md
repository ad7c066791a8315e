# sidequests

A handful of small, self-contained networked tools. Each one works on its own:

| Command         | What it is                                         |
|-----------------|----------------------------------------------------|
| `gator`         | Command-line RSS feed aggregator (SQLite storage)  |
| `chirpy`        | HTTP API for short posts ("chirps") and users      |
| `orders-api`    | HTTP API for orders stored in Redis                |
| `chat-app`      | WebSocket chat room relayed through Redis pub/sub  |
| `list-consumer` | Prints items popped from a Redis list              |

The package also includes a small expiring in-memory cache, `sidequests.pokedex.pokecache.Cache`.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## gator

gator reads its settings from `.gatorconfig.json` in your home directory. The file is a JSON
object with two fields:

- `db_url`: the path of a SQLite database file. A leading `sqlite:///` is stripped. The tables are created on first use.
- `current_user_name`: the user who is logged in.

```
gator register alice
gator login alice
gator users
gator addfeed "Example Blog" https://example.com/feed.xml
gator feeds
gator follow https://example.com/feed.xml
gator following
gator unfollow https://example.com/feed.xml
gator agg 1m
gator browse 5
gator reset
```

- `register` creates a user and logs them in.
- `login` switches to an existing user.
- `users` lists all users and marks the current one.
- `reset` deletes all users, together with their feeds, follows and posts.
- `addfeed` adds a feed and follows it for you.
- `agg` takes a positive duration such as `30s`, `5m`, `1h30m` or `1.5h`. It fetches the feed that was fetched least recently, stores any posts it has not seen, and repeats every interval until you interrupt it. It parses the usual RSS date layouts for publication times.
- `browse` shows the newest posts from the feeds you follow. It shows two unless you give a limit.

`addfeed`, `follow`, `following`, `unfollow` and `browse` need a logged-in user. Errors are
printed as `Error: ...`, and the command exits with status 1.

## chirpy

```
chirpy
```

chirpy listens on port 8080. It takes its settings from the environment or from a `.env`
file:

- `DB_URL`: the path of a SQLite database file. A leading `sqlite:///` is stripped. If it is empty, an in-memory database is used.
- `PLATFORM`

Endpoints:

- `GET /api/healthz` returns `OK`.
- `POST /api/users` takes `{"email": "user@example.com", "password": "password"}`. Passwords are stored as argon2id hashes. The hash is never returned.
- `POST /api/chirps` takes `{"body": "...", "user_id": "<uuid>"}`. A body may be at most 140 bytes. The words `kerfuffle`, `sharbert` and `fornax`, in any case, are replaced by `****`. Unknown fields are rejected with a 400.
- `GET /api/chirps` lists chirps oldest first. `GET /api/chirps/<id>` returns one chirp.
- `GET /admin/metrics` shows how many times the file server was hit.
- `POST /admin/reset` deletes all users and clears the hit counter. It only works when `PLATFORM=dev`.
- `/app/` serves files from the working directory, and `/assets/` serves files from `./assets`. A directory is shown as its `index.html` if it has one, and as a listing otherwise.

## orders-api

```
orders-api
```

orders-api connects to Redis at `REDIS_ADDR` (default `localhost:6379`) and listens on
`SERVER_PORT` (default `3000`). An invalid port falls back to the default. It logs each
request and stops on Ctrl-C.

- `POST /orders` takes `{"customer_id": "<uuid>", "line_items": [{"item_id": "<uuid>", "quantity": 1, "price": 100}]}`. The order gets a random 64-bit id and a creation time.
- `GET /orders?cursor=N` returns pages of up to 50 orders. `next` holds the next cursor and is left out at the end.
- `GET /orders/<id>` returns one order, and `DELETE /orders/<id>` deletes one.
- `PUT /orders/<id>` takes `{"status": "shipped"}` or `{"status": "completed"}`. An order can be shipped once, and completed once, only after it has been shipped.

## chat-app

```
chat-app [--port PORT]
```

chat-app serves WebSocket connections at `/chat/<username>`, on port 8080 by default. Each
message a user sends is published to the Redis channel `demo-chat` on `localhost:6379` as
`<username>:<text>`. Every other connected user receives it as `[<sender> says]: <text>`.
Only the text up to the first colon is relayed. The server stops on SIGINT or SIGTERM.

## list-consumer

```
list-consumer
```

list-consumer blocks on the Redis list `demo-list` on `localhost:6379` and prints each item
it pops.

## Expiring cache

`sidequests.pokedex.pokecache.Cache(interval)` is a thread-safe byte cache:

- `add(key, val)` stores a value.
- `get(key)` returns the value, or `None` if the key is absent.
- A background thread, started on the first `add`, drops entries older than `interval` seconds. `interval` must be positive.
- `close()` stops that thread. The cache can also be used as a context manager.

## What is not included

The `sidequests.pokedex` package holds only the cache described above. There is no
interactive Pokedex shell, no client for a Pokemon web API, and no `pokedex` command.