"""
Triage API Smoke Script

Exercises every endpoint of a running server.

Run: python scripts/smoke_api.py [base_url]
"""
import json
import sys
from typing import Any, Dict

import requests

BASE_URL = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8002"


def print_step(name: str):
    """Print step header."""
    print(f"\n{'='*70}")
    print(f"{name}")
    print(f"{'='*70}")


def submit(vitals: Dict[str, Any]) -> Dict[str, Any]:
    response = requests.post(f"{BASE_URL}/predict/", json=vitals)
    print(f"Status: {response.status_code}")
    print(json.dumps(response.json(), indent=2))
    response.raise_for_status()
    return response.json()


def main():
    print_step("1. Health")
    response = requests.get(f"{BASE_URL}/health")
    print(json.dumps(response.json(), indent=2))
    assert response.status_code == 200

    print_step("2. Clear queue")
    print(requests.delete(f"{BASE_URL}/queue/clear/").json())

    print_step("3. Submit assessments")
    routine = submit({
        "Heart_Rate": 78, "Respiratory_Rate": 16, "Body_Temperature": 36.9,
        "Oxygen_Saturation": 98, "Systolic_Blood_Pressure": 122,
        "Diastolic_Blood_Pressure": 79, "Age": 34, "Gender": 1,
        "Weight_kg": 62, "Height_m": 1.68
    })
    urgent = submit({
        "Heart_Rate": 128, "Respiratory_Rate": 27, "Body_Temperature": 39.1,
        "Oxygen_Saturation": 89, "Systolic_Blood_Pressure": 88,
        "Diastolic_Blood_Pressure": 56, "Age": 72, "Gender": 0,
        "Weight_kg": 81, "Height_m": 1.77
    })

    print_step("4. Duplicate is rejected")
    response = requests.post(
        f"{BASE_URL}/predict/",
        json={"patient_id": urgent["patient_id"], "Heart_Rate": 80}
    )
    print(f"Status: {response.status_code} {response.json()}")

    print_step("5. Queue")
    for patient in requests.get(f"{BASE_URL}/queue/").json():
        print(f"  #{patient['queue_position']} {patient['patient_id']} "
              f"{patient['risk_level']:<6} score={patient['priority_score']:.2f} "
              f"wait={patient['estimated_wait_time']}min")

    print_step("6. Update priorities")
    print(requests.post(f"{BASE_URL}/queue/update-priorities/").json()["total"], "patients rescored")

    print_step("7. Call next patient")
    called = requests.get(f"{BASE_URL}/queue/next/").json()
    print(json.dumps(called, indent=2))

    print_step("8. Feedback")
    response = requests.post(f"{BASE_URL}/feedback/", params={
        "patient_id": called["patient_id"],
        "actual_wait_time": 6,
        "satisfaction_score": 0.8,
        "resource_utilization": 0.5
    })
    print(json.dumps(response.json(), indent=2))

    print_step("9. Stats")
    print(json.dumps(requests.get(f"{BASE_URL}/stats/").json(), indent=2))

    print(f"\nDone. Remaining patient: {routine['patient_id']}")


if __name__ == "__main__":
    main()
