"""
Local smoke check: boots the app on the in-memory store, submits two nearby
reports, runs one escalation sweep, resolves the first report with a photo
and prints the analytics.

    STORE_BACKEND=memory AI_ENABLED=false python run_checks.py
"""

from fastapi.testclient import TestClient

from reporthub.core.settings import settings
from reporthub.main import app

settings.ESCALATION_SCHEDULER_ENABLED = False

REPORT = {
    "latitude": 12.9716,
    "longitude": 77.5946,
    "photo_ref": "smoke.jpg",
    "category": "POTHOLE",
    "severity": "HIGH",
}

with TestClient(app) as client:
    print('ROOT:')
    print(client.get('/').json())

    print('\nHEALTH:')
    print(client.get('/health').json())

    print('\nSTORE HEALTH:')
    resp = client.get('/health/store')
    print(resp.status_code, resp.json())

    print('\nSUBMIT:')
    print(client.post('/reports', json=REPORT).json())
    print(client.post('/reports', json={**REPORT, "latitude": 12.9717}).json())

    print('\nREPORTS:')
    for report in client.get('/reports', params={"include_duplicates": True}).json():
        print(report["id"], report["is_primary"], report["duplicate_count"], report["sla_deadline"])

    print('\nSWEEP:')
    print(client.post('/escalations/sweep').json())

    print('\nRESOLVE:')
    print(client.post('/reports/1/resolve', json={"resolution_photo_ref": "smoke-after.jpg"}).json())
    print(client.get('/reports/1/resolution').json())

    print('\nANALYTICS:')
    print(client.get('/analytics').json())
