"""Transport helpers: error handlers and the HTTP binding for endpoints."""