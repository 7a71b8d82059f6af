"""HTTP binding for endpoints: messages, hooks, a WSGI server and a client."""