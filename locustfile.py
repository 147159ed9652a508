from locust import HttpUser, task, between
import random


class JsonRpcUser(HttpUser):
    host = "http://127.0.0.1:8080"
    wait_time = between(0.05, 0.2)

    @task(5)
    def block_number(self):
        # Identical requests: mostly served from the cache
        payload = {"jsonrpc": "2.0", "id": 0, "method": "eth_blockNumber", "params": []}
        self.client.post("/", json=payload, headers={"Content-Type": "application/json"})

    @task(1)
    def get_block(self):
        # Distinct params: forwarded to an upstream
        block = hex(random.randint(1, 10_000_000))
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "eth_getBlockByNumber",
            "params": [block, False],
        }
        self.client.post("/", json=payload, headers={"Content-Type": "application/json"})
