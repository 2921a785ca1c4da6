from prometheus_client import Counter, Histogram

# 低基数标签：operation 为固定的后端调用名，outcome 为 ok 或错误类名
STORAGE_OPERATIONS = Counter(
    "oss_storage_operations_total",
    "Total object storage backend calls",
    ["operation", "outcome"],
)

STORAGE_LATENCY = Histogram(
    "oss_storage_operation_duration_seconds",
    "Object storage backend call latency in seconds",
    ["operation"],
)
