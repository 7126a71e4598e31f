DEFAULT_API_PORT = 18080
DEFAULT_TESTING_HTTP_PORT = 18081
DEFAULT_NETWORK_PORT = 3000
DEFAULT_DA_NETWORK_PORT = 3300
DEFAULT_PROMETHEUS_HTTP_PORT = 9090

DEFAULT_HTTP_POLL_INTERVAL = 1.0
DEFAULT_NODE_HTTP_TIMEOUT = 240.0
DEFAULT_NODE_HTTP_PROBE_TIMEOUT = 30.0
DEFAULT_K8S_DEPLOYMENT_TIMEOUT = 180.0
