# retro

`retro` walks through a list of EVM wallets and runs a configurable set of
tasks for each one. It picks tasks at random or in a fixed sequence, retries
failed tasks, pauses for random intervals between accounts, actions and
retries, records every task outcome in SQLite, and can resume a run after the
last wallet that finished.

## Installation

```
pip install .
```

For development and tests:

```
pip install ".[test]"
pytest
```

## Running

```
retro --config config/config.yml --wallets local/data/private_keys.txt
```

Both options have these paths as their defaults. A `.env` file in the
working directory is read at start-up, if one exists.

Log lines go to standard output: time, call site, level, message and
`key=value` fields, coloured when the output is a terminal (set `NO_COLOR` to
turn colours off). A missing or malformed configuration file, a bad keys file
or a storage problem is reported as `FATAL` and the command exits with
status 1.

Ctrl+C or SIGTERM cancels the run: wallets still being processed are
cancelled, then the storage is closed before the program exits.

## The keys file

One private key per line, 64 hex digits, with or without a `0x` prefix. Empty
lines and lines starting with `#` are ignored. Lines that do not hold a valid
secp256k1 key are reported with their line number and skipped; if no valid
key is left, the program stops.

## Configuration

```yaml
log_file_path: ""

rpc_nodes:
  sepolia:
    - https://rpc.example.com

concurrency:
  max_parallel_wallets: 1      # 1 or less: one wallet after another

wallets:
  process_order: sequential    # or random

delay:
  between_accounts: {min: 10, max: 30, unit: seconds}
  between_actions:  {min: 5,  max: 15, unit: seconds}
  after_error:      {min: 1,  max: 2,  unit: minutes}
  between_retries:
    delay: {min: 5, max: 10, unit: seconds}
    attempts: 3

actions:
  actions_per_account: {min: 1, max: 3}
  task_order: sequential       # or random
  explicit_task_sequence: []   # e.g. [log_balance, dummy_task]

tasks:
  - name: log_balance
    network: sepolia
    enabled: true
    params: {}
  - name: dummy_task
    network: any               # "any" runs without an RPC connection
    enabled: true
    params: {}

database:
  type: sqlite                 # sqlite, or none / empty to store nothing
  connection_string: local/data/retro.db

state:
  resume_enabled: true
```

Missing keys keep their defaults (zero, empty or false). Values of the wrong
type are rejected when the file is loaded.

Delay units are `seconds` or `minutes`; an empty unit means seconds. An
unknown unit is reported and that pause is skipped.

With `max_parallel_wallets` above 1, up to that many wallets (never more than
there are wallets) are processed at once. Otherwise wallets are processed one
after another, and the run stops at the first wallet that fails.

When `explicit_task_sequence` is not empty, exactly those enabled tasks run,
in that order. Otherwise a random number of tasks between the
`actions_per_account` bounds is drawn from the enabled tasks (repeats are
possible); with `task_order: sequential` they are then ordered as they appear
under `tasks`. Enabled tasks whose names are not built in are reported and
ignored.

Each task is tried up to `between_retries.attempts` times (at least once).
If every attempt fails and `after_error` has a non-zero bound, the wallet
pauses for that long before going on.

With `state.resume_enabled`, the index of the last wallet that completed is
stored under the key `last_completed_wallet_index` and the next run starts
after it; random wallet order is ignored while resuming.

### Environment overrides

| Variable               | Overrides                     |
|------------------------|-------------------------------|
| `DB_TYPE`              | `database.type`               |
| `DB_CONNECTION_STRING` | `database.connection_string`  |
| `DB_POOL_MAX_CONNS`    | `database.pool_max_conns`     |

## Tasks

* `log_balance` – fetches and logs the wallet's native balance, in Ether, from
  an RPC node of the task's network (chosen at random from `rpc_nodes`). It
  fails on network `any`.
* `dummy_task` – waits one to three seconds and succeeds; useful for trying
  out a configuration.

Further tasks implement `retro.tasks.registry.TaskRunner` (an async
`run(signer, client, params)` method) and are registered with
`retro.tasks.registry.must_register_constructor(name, constructor)`, where the
constructor takes the logger.

## Stored records

With SQLite enabled, the database file (and its directory) is created if
needed and opened in WAL mode. Every task run is written to the
`transactions` table: time, wallet address, task name, network, status
`Success` or `Failed`, and the error message if any. Resume state lives in
the `application_state` table.

## Library use

The parts the command is built from can be used directly:

* `retro.config.load_config(path)` returns a `Config`.
* `retro.keyloader.load_keys(path, log)` returns `LoadedKey` objects.
* `retro.database.new_storage(log, db_type, conn_str)` returns a
  transaction logger and a state store.
* `retro.app.Application(cfg, keys, tx_logger, state_storage, log)` with its
  async `run()` processes the wallets.
* `retro.signer.Signer` signs EIP-1559 transactions
  (`DynamicFeeTransaction`) and EIP-191 personal messages.
* `retro.evm_client.EVMClient.connect(log, urls)` gives a JSON-RPC client
  for balances, nonces, gas, calls, raw transactions and receipts.
* `retro.utils` converts between wei, gwei and decimal strings.

## What it does not do

* PostgreSQL is not supported: `database.type: postgres` is rejected with an
  error. Use `sqlite` or `none`.
* `database.pool_max_conns` is read but has no effect with SQLite.
* `log_file_path` is read but logs are only written to standard output.
* The built-in tasks only read from the chain; none sends a transaction.