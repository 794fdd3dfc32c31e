# Load test for the seamless callback endpoints.
#
# Seed players first, e.g.
#   python -m seamless_wallet.scripts.initialize_db --username load_1 --remote-id load_remote_1 --balance 100000
# then run
#   LOAD_REMOTE_IDS=load_remote_1 SEAMLESS_SALT_KEY=... locust -f locustfiles/callback_load.py
import hashlib
import os
import random
import uuid

from locust import HttpUser, between, task

BASE_URL = os.environ.get("LOAD_BASE_URL", "http://localhost:8000")
SALT_KEY = os.environ.get("SEAMLESS_SALT_KEY", "change_me_salt_key")
REMOTE_IDS = [r for r in os.environ.get("LOAD_REMOTE_IDS", "demo_remote_1").split(",") if r]
CALLBACK_PATH = "/api/seamless/callback"


def sign(params):
    """Appends key=sha1(salt + k=v&k=v) in the order the params will be sent."""
    query = "&".join(f"{name}={value}" for name, value in params)
    return params + [("key", hashlib.sha1((SALT_KEY + query).encode("utf-8")).hexdigest())]


class CallbackUser(HttpUser):
    wait_time = between(0.1, 0.5)
    host = BASE_URL

    def on_start(self):
        self.remote_id = random.choice(REMOTE_IDS)
        self.round_id = uuid.uuid4().hex
        self.recent_transaction_ids = []

    def _call(self, action, params):
        signed = sign([("remote_id", self.remote_id)] + params)
        with self.client.get(
            f"{CALLBACK_PATH}/{action}",
            params=signed,
            catch_response=True,
            name=f"{CALLBACK_PATH}/{action}",
        ) as response:
            if response.status_code != 200:
                response.failure(f"{action} HTTP {response.status_code}")
                return None
            body = response.json()
            # insufficient funds is an expected business outcome under load
            if body.get("status") not in ("200", "403"):
                response.failure(f"{action} status {body.get('status')}: {body.get('msg')}")
                return None
            response.success()
            return body

    @task(2)
    def balance(self):
        self._call("balance", [])

    @task(5)
    def debit(self):
        tx_id = f"load_deb_{uuid.uuid4().hex}"
        amount = f"{random.uniform(0.1, 5.0):.2f}"
        body = self._call("debit", [("transaction_id", tx_id), ("amount", amount), ("round_id", self.round_id)])
        if body and body.get("status") == "200":
            self.recent_transaction_ids.append(tx_id)
            # replay the same debit now and then; the balance must not move
            if random.random() < 0.1:
                self._call("debit", [("transaction_id", tx_id), ("amount", amount), ("round_id", self.round_id)])

    @task(3)
    def credit(self):
        tx_id = f"load_crd_{uuid.uuid4().hex}"
        amount = f"{random.uniform(0.1, 8.0):.2f}"
        self._call("credit", [("transaction_id", tx_id), ("amount", amount), ("round_id", self.round_id)])

    @task(1)
    def rollback(self):
        if not self.recent_transaction_ids:
            return
        tx_id = self.recent_transaction_ids.pop(random.randrange(len(self.recent_transaction_ids)))
        self._call("rollback", [("transaction_id", tx_id)])
