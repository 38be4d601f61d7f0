# pingcheck

pingcheck sends ICMP echo requests to a set of configured targets and turns
the results into connectivity metrics. These are round-trip times, packet loss
and packet counts. Each one is labelled with the target's name and its
resolved IP address. It needs nothing beyond the Python standard library.

## Installation

```
pip install .
```

To run the test suite, install the test extra and run pytest:

```
pip install ".[test]"
pytest
```

## Command line

```
pingcheck --help
pingcheck --once 127.0.0.1 localhost
pingcheck -c config.json --collection-interval 30s
```

Give targets as positional `ENDPOINT` arguments, in a JSON configuration file
(`-c/--config`), or both. The command checks every target once per collection
cycle. Each batch of metrics is written to standard output as one JSON line.
Without `--once` it runs until interrupted.

Options:

- `--count`, `--timeout` and `--interval` apply to the targets given on the command line.
- `--collection-interval` sets the time between checks.
- `--privileged` uses raw ICMP sockets.
- `--enable-metric NAME` and `--disable-metric NAME` switch individual metrics on or off. Both may be repeated.
- `--once` runs a single check and exits.
- `-v/--verbose` logs debug messages to standard error.

Durations may be given as numbers of seconds or as strings such as `5s`,
`500ms` or `1m30s`.

Exit status:

| status | meaning                                   |
|--------|-------------------------------------------|
| 0      | success                                   |
| 1      | a failed check with `--once`, or a failed start |
| 2      | an invalid or unreadable configuration    |

## Configuration

A configuration is a mapping. `pingcheck.config.load_config` turns it into a
`Config`. The same keys are accepted in the JSON file given to the command.

```python
from pingcheck.config import load_config

cfg = load_config({
    "collection_interval": "60s",
    "initial_delay": 1,
    "timeout": 0,
    "privileged": False,
    "targets": [
        {"endpoint": "127.0.0.1"},
        {"endpoint": "localhost", "count": 2, "timeout": "2s", "interval": 1},
    ],
    "metrics": {"ping.errors": {"enabled": True}},
})
cfg.validate()
```

The top-level keys are:

- `collection_interval`: default 60 seconds.
- `initial_delay`: default 1 second.
- `timeout`: a limit on one whole scrape. `0` means no limit.
- `privileged`
- `targets`
- `metrics`

Unknown keys raise `ConfigError`.

Each target takes:

| key        | meaning                           | default when 0 or absent |
|------------|-----------------------------------|--------------------------|
| `endpoint` | host name or IP address to ping   | none                     |
| `count`    | number of echo requests per check | 4                        |
| `timeout`  | time limit for one check          | 5 seconds                |
| `interval` | time between requests             | 1 second                 |

`Config.validate` raises `ConfigError` and lists every problem it finds:

- no targets
- an empty endpoint
- a negative count, timeout or interval

By default pingcheck uses unprivileged datagram ICMP sockets. Setting
`privileged` uses raw ICMP sockets instead. On Windows, privileged mode is
always used.

## Metrics

| name                    | kind          | unit       | enabled by default |
|-------------------------|---------------|------------|--------------------|
| `ping.duration`         | gauge         | `ms`       | yes                |
| `ping.duration.min`     | gauge         | `ms`       | yes                |
| `ping.duration.max`     | gauge         | `ms`       | yes                |
| `ping.duration.avg`     | gauge         | `ms`       | yes                |
| `ping.duration.stddev`  | gauge         | `ms`       | yes                |
| `ping.packet_loss`      | gauge (ratio) | `1`        | yes                |
| `ping.packets.sent`     | monotonic sum | `{packet}` | yes                |
| `ping.packets.received` | monotonic sum | `{packet}` | yes                |
| `ping.errors`           | monotonic sum | `{error}`  | no                 |

Every data point carries `net.peer.name` and `net.peer.ip` attributes.
`ping.errors` also carries `error.type`, one of these values:

- `timeout`
- `dns_failure`
- `network_unreachable`
- `permission_denied`
- `unknown`

Some metrics are not always recorded:

- The scraper does not keep individual round-trip times, so `ping.duration` is normally not emitted.
- The min, max, avg and stddev gauges are recorded only when their value is above zero.

## Library use

```python
from pingcheck.factory import new_factory

factory = new_factory()
cfg = factory.create_default_config()
# fill in cfg.targets, then:
receiver = factory.create_metrics(cfg, print)
receiver.start()
receiver.scrape_once()
receiver.shutdown()
```

`MetricsReceiver.start` creates a pinger for each target. It then scrapes in
the background every collection interval. `MetricsReceiver.scrape_once` pings
every target concurrently and hands the collected `pingcheck.pdata.Metrics` to
the consumer. If any target fails, it still delivers what was collected and
then raises `ScrapeError`.

Lower-level pieces are also usable on their own:

- `pingcheck.scraper.PingScraper`: `start`, `scrape`, `shutdown`.
- `pingcheck.pinger.Pinger`: `run`, `stop`, `statistics`.
- `pingcheck.metadata.MetricsBuilder`

## What it does not do

pingcheck does not send metrics anywhere. There is no exporter to a
monitoring backend and no metrics server. The command only prints JSON lines,
and the library hands `Metrics` objects to the consumer you supply.