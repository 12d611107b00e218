# portwatch

portwatch is a library of building blocks for watching the ports a host
listens on: a YAML configuration model, listener and alert types with text
and JSON formatting, filters that hold back repeated or excessive alerts,
and a baseline of expected listeners that can be learned, saved and used to
pick out the unknown ones.

## Modules

### `portwatch.config.core`

- `load(path)` reads a YAML file, overlays it on `default_config()` and
  calls `Config.validate()`. Any failure to read, parse or validate raises
  `ConfigError`.
- `must_load(path)` does the same but raises `RuntimeError`.
- `find_config_file(explicit)` returns `explicit` if it exists (else raises
  `ConfigError`). With an empty string it tries, in order,
  `portwatch.yaml`, `portwatch.yml`, `/etc/portwatch/portwatch.yaml`,
  `/etc/portwatch/portwatch.yml`, `~/.config/portwatch/portwatch.yaml` and
  `~/.portwatch.yaml`, and returns the first that exists.
- `parse_duration(text)` turns strings such as `500ms`, `30s`, `2m` or
  `1h30m` into a `timedelta`.
- `Config` has `interval`, `log_level`, `rules` (a list of `RuleConfig`) and
  `alert` (an `AlertConfig`). `default_config()` gives a 15 second interval,
  log level `info`, no rules and the default alert settings.

`Config.validate()` requires an interval of at least one second, a log level
of `debug`, `info`, `warn` or `error`, and a name and an action of `allow`
or `deny` on every rule.

### `portwatch.config.notifiers`

Settings for the alert level and the notification channels:
`WebhookConfig`, `SlackConfig`, `EmailConfig`, `ExecConfig`,
`SyslogConfig`, `LogNotifierConfig`, `NotifierConfig`, `AlertConfig` and
`AuditNotifierConfig`. Each has a `default_*_config()` function and a
`validate()` method that raises `ValidationError` (a `ValueError` carrying
`field` and `message`). All but `LogNotifierConfig` have a `merge(defaults)`
method that returns a copy with unset fields taken from `defaults`.

### `portwatch.config.pipeline`

`FilterConfig` (with `is_port_excluded(port)`), `OutputConfig` and the
`OutputFormat` enum (`text`, `json`), `SortConfig` (whose `validate()`
normalises the field name in place, an empty one becoming `port`) and
`PipelineConfig`, which groups the three.

### `portwatch.alert.events`

- `Listener(protocol, ip, port, process=None)`, with `ProcessInfo(pid, name,
  exe)`; `listener.address` joins IP and port, bracketing IPv6 addresses as
  `format_address` does.
- `Alert` and `new_alert(level, listener, message)`, with severities in
  `Level` (`INFO`, `WARN`, `ALERT`).
- `LogNotifier(out=None)` writes each item it is given as a line of text to
  `out`, or to standard output.
- `Event(type, listener, rule="")`, with `EventType` (`appeared`,
  `disappeared`, `unexpected`, `denied`, `allowed`) and `to_dict()`.
- `TextFormatter(color, timestamps)` and `JsonFormatter`; `new_formatter(cfg)`
  picks one from an `OutputConfig`.

### `portwatch.alert.filters`

`CooldownFilter`, `DedupFilter`, `RateLimiter`, `SuppressFilter` and
`ThrottleFilter`. Windows are given as a `timedelta` or in seconds, and every
filter accepts an optional `clock` callable returning seconds, which makes
them easy to drive in tests.

### `portwatch.baseline`

- `Store(file_path="")` holds known listeners by protocol, IP and port, with
  `add`, `contains` (also `in`), `save()` to JSON and `load()`, which leaves
  the store as it is when the file is missing.
- `Checker(store)` offers `is_known`, `filter_unknown` and `filter_known`.
- `Learner(store, window)` adds observed listeners until its window closes;
  `is_learning()` and `remaining()` report on it.
- `BaselineFilter(checker, learner, logger=None)` passes every listener
  while learning and only unknown ones afterwards.

## Example

```yaml
interval: 30s
log_level: info
rules:
  - name: allow-ssh
    port: 22
    proto: tcp
    address: 0.0.0.0
    action: allow
alert:
  level: warn
  dedup_window: 1m
  email:
    enabled: true
    smtp_host: smtp.example.com
    from: portwatch@example.com
    to: [admin@example.com]
```

```python
from portwatch.config.core import find_config_file, load
from portwatch.alert.events import Listener, Level, LogNotifier, new_alert
from portwatch.baseline import Store, Checker

config = load(find_config_file(""))

store = Store("baseline.json")
store.load()
listener = Listener("tcp", "0.0.0.0", 8080)
if not Checker(store).is_known(listener):
    LogNotifier().notify(new_alert(Level.WARN, listener, "unexpected listener"))
```

## What it does not do

The package has no command to run and no daemon loop. It does not scan the
host for listening sockets: listeners must be built and passed in by the
caller. It does not match listeners against rules on its own. Apart from
`LogNotifier`, it does not deliver alerts: the webhook, Slack, e-mail,
syslog, command and audit settings in `portwatch.config.notifiers` are
configuration only.