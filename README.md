# servicekit

Building blocks for services made of small, composable endpoints.

An *endpoint* is any callable `endpoint(ctx, request) -> response` that
raises an exception when it fails. The context `ctx` is a mapping. The
package provides middleware that wraps endpoints, an HTTP transport that
serves endpoints and calls remote ones, helpers for testing metrics, and a
manager for a long-lived network connection.

It uses only the standard library.

## Installation

```
pip install servicekit
```

The `test` extra installs pytest for running the test suite:

```
pip install "servicekit[test]"
```

## Rate limiting: `servicekit.ratelimit`

- `erroring_limiter(limit)` returns a middleware. `limit` is either an object
  with an `allow()` method or a callable that takes no arguments. When it
  returns false, the request is rejected with `RateLimitExceeded` and the
  wrapped endpoint is not called.
- `delaying_limiter(limit)` returns a middleware that calls `limit.wait(ctx)`
  before each request. `limit` may also be a callable that takes the context.
  If the waiter raises, the exception reaches the caller and the endpoint is
  not called.

```python
from servicekit.ratelimit import erroring_limiter

limited = erroring_limiter(lambda: bucket.try_take())(my_endpoint)
limited({}, request)
```

## Metrics: `servicekit.metrics`

### `servicekit.metrics.timer.Timer`

`Timer(histogram, unit=1.0)` starts timing when it is created.
`observe_duration()` calls `histogram.observe(...)` with the elapsed time.
By default the time is in seconds. Set `unit` to change it, for example
`1e-3` for milliseconds. The timer also works as a context manager and
observes when the block exits.

### `servicekit.metrics.teststat`

Helpers for testing a metrics backend. Each `check_*` function raises
`AssertionError` when the backend reports the wrong result.

- `check_counter(counter, value)`: feeds random deltas into
  `counter.add(...)` through `fill_counter(counter)`, then compares the total
  with `value()`.
- `check_gauge(gauge, value)`: calls `gauge.set(...)` and `gauge.add(...)`,
  then checks `value()`. A single reported value must equal the last value.
  Several reported values must equal all values the gauge held, in any order.
- `check_histogram(histogram, quantiles, tolerance)`: fills the histogram
  with `populate_normal_histogram`, then compares `quantiles()` (p50, p90,
  p95, p99) with `normal_quantiles()` within a relative `tolerance`.
- `populate_normal_histogram(histogram, seed)`: makes `COUNT` observations
  from a normal distribution with `MEAN` and `STDEV`, clamped at zero.
- `normal_quantiles()`, `erfinv(y)` and `expected_observations_less_than(bucket)`:
  the reference values.
- `sum_lines(source, regex)` and `last_line(source, regex)`: return functions
  that read a number from every line of a text dump. `source` is a callable
  that returns the text, or an object with `getvalue()` such as
  `io.StringIO`. The first group of `regex` captures the number. A line that
  does not match raises `ValueError`.

## Transport errors: `servicekit.transport.error_handler`

- `ErrorHandler(func)` passes each `(ctx, err)` to `func` through `handle`.
- `LogErrorHandler(logger=None)` logs each error at error level. When no
  logger is given it uses the `servicekit.transport` logger.

## HTTP transport: `servicekit.transport.httptransport`

### Messages: `messages`

- `Headers` is a multi-valued header map with case-insensitive names. It
  provides `get`, `get_all`, `set`, `add` and `delete`.
- `Request` and `Response` are dataclasses. `Request.with_context(ctx)`
  returns a copy that carries `ctx`.
- `ResponseWriter` is the protocol that servers write to: `headers`,
  `write_header(code)` and `write(data)`.
- `ResponseRecorder` is a `ResponseWriter` that keeps the status code,
  headers and body in memory.

### Server: `server`

`Server(endpoint, decode, encode, *, before=(), after=(), error_encoder=default_error_encoder, error_handler=None, finalizer=())`

`serve_http(writer, request)` handles one request in these steps:

1. Runs the `before` hooks.
2. Decodes the request.
3. Calls the endpoint.
4. Runs the `after` hooks.
5. Encodes the response.

An exception from decoding, the endpoint or encoding goes to the error
handler and is then written by the error encoder. By default the error
handler ignores errors.

Finalizers run after the request is handled. Each receives the status code
and the request. The context it receives holds `ContextKey.RESPONSE_HEADERS`
and `ContextKey.RESPONSE_SIZE`. To collect these, the writer is wrapped in
`interceptor.InterceptingWriter`.

A `Server` is also a WSGI application, and `request_from_environ(environ)`
builds a `Request` from a WSGI environment.

Ready-made pieces:

- `nop_request_decoder` decodes nothing and passes `None` to the endpoint.
- `encode_json_response` writes the response as JSON. It honours `headers`
  and `status_code` attributes of the response, and writes no body for 204.
- `default_error_encoder` writes the error message as plain text with
  status 500. It uses JSON instead when the error has a working `to_json()`
  method, and it honours `headers` and `status_code` attributes.

```python
from wsgiref.simple_server import make_server

from servicekit.transport.httptransport.server import (
    Server,
    encode_json_response,
    nop_request_decoder,
)

def hello(ctx, request):
    return {"greeting": "hello"}

app = Server(hello, nop_request_decoder, encode_json_response)
make_server("localhost", 8080, app).serve_forever()
```

### Request and response hooks: `request_funcs`

- `set_request_header(key, value)` sets a header on the request.
- `set_response_header(key, value)` and `set_content_type(content_type)`
  set headers on the response.
- `populate_request_context(ctx, request)` returns a new context. It holds
  these request details under `ContextKey` members:
  - the method, URI, path, protocol, host and remote address
  - several common headers

### Client: `client`

`Client(create_request, decode, *, http_client=None, before=(), after=(), finalizer=(), buffered_stream=False)`

A `Client` calls a remote method. It can be used in two ways:

- call the client itself as `client(ctx, request)`;
- call `client.endpoint()` to get an endpoint.

The response body is closed once decoding finishes. With
`buffered_stream=True` it is left open, and the caller must close it.

Finalizers run for every call. Each receives the error raised, or `None`.
When a response arrived, the context also holds its headers and content
length.

- `new_client(method, target, encode, decode, **kwargs)` builds a `Client`
  that sends `method` requests to `target`. `target` is a string, or an
  object with `geturl()`. `encode` fills in the request body.
- `UrllibClient(timeout=None)` is the default `http_client`. It sends
  requests with `urllib` and returns error statuses as responses instead of
  raising.
- `encode_json_request` and `encode_xml_request` are ready-made encoders.
  Both apply headers offered by the payload.

```python
import json

from servicekit.transport.httptransport.client import encode_json_request, new_client

def decode(ctx, response):
    return json.load(response.body)

call = new_client("POST", "http://localhost:8080/", encode_json_request, decode).endpoint()
result = call({}, {"name": "example"})
```

## Connections: `servicekit.conn`

`Manager(dialer, network, address, after=None, logger=None)` holds one
connection, obtained from `dialer(network, address)`.

- `take()` returns the current connection, or `None`.
- `put(err)` reports the result of using the connection. A non-`None` error
  closes the connection and starts a reconnect. A failed dial is retried
  after a delay that grows with `exponential(delay)`: the delay doubles with
  ±50% jitter and is capped at one minute.
- `write(data)` does a whole take/put cycle. It raises `ConnectionUnavailable`
  when there is no connection.
- `close()` closes the connection and stops reconnecting. The manager is also
  a context manager.

`default_manager(network, address, logger=None)` dials real sockets and
supports the `tcp`, `tcp4`, `tcp6`, `udp`, `udp4`, `udp6` and `unix`
networks.

## What the package does not do

- **No metric backends.** There are no counters, gauges or histograms in the
  package. The timer and the `teststat` helpers work on objects that you
  supply.
- **No socket listener.** `Server` is a WSGI application. Run it under a WSGI
  server such as `wsgiref`.
- **No command-line program.**