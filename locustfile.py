from locust import HttpUser, task, between
import random


class CashierUser(HttpUser):
    wait_time = between(0.1, 0.5)

    def on_start(self):
        # Register and log in a cashier for this simulated till
        uname = f"cashier_{random.randint(1, 1_000_000)}"
        self.client.post("/auth/register", json={"username": uname, "password": "secret", "role": "cashier"})
        r = self.client.post("/auth/login", json={"username": uname, "password": "secret"})
        self.headers = {"Authorization": f"Bearer {r.json()['token']}"} if r.status_code == 200 else {}
        r = self.client.get("/menu")
        self.menu = r.json() if r.status_code == 200 else []

    @task(3)
    def record_sale(self):
        if not self.menu:
            return
        cart = random.sample(self.menu, k=min(len(self.menu), random.randint(1, 3)))
        items = [{"id": m["id"], "name": m["name"], "price": m["price"]} for m in cart]
        total = str(sum(float(m["price"]) for m in cart))
        self.client.post("/transactions", json={
            "items": items,
            "total": total,
            "method": random.choice(["cash", "qris"]),
            "dineType": random.choice(["dine-in", "take-away"]),
        })

    @task(1)
    def view_reports(self):
        if not self.headers:
            return
        self.client.get("/reports/omset", headers=self.headers)
