# /guided_flows/utils/metrics.py

from prometheus_client import Counter, Histogram, Gauge

# Prometheus metrics for flow sessions, transitions and execution steps.

# Session lifecycle
flow_sessions_counter = Counter('flow_sessions_total', 'Flow session lifecycle events', ['flow_id', 'event'])
active_sessions_gauge = Gauge('flow_active_sessions', 'Number of active flow sessions')

# Transitions
flow_transitions_counter = Counter('flow_transitions_total', 'Flow transitions', ['flow_id', 'outcome'])

# Execution steps
action_executions_counter = Counter('flow_action_executions_total', 'Action executor calls', ['flow_id', 'status'])
action_duration_histogram = Histogram('flow_action_duration_seconds', 'Action executor duration in seconds', ['flow_id'])

# Performance
response_time_histogram = Histogram('response_time_seconds', 'Response time in seconds', ['endpoint'])
state_store_operations = Counter('flow_state_store_operations_total', 'Flow state store operations', ['operation', 'status'])
