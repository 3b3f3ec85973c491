#!/usr/bin/env python3
"""
Transport booking lifecycle flow script.

DO NOT ADD BUSINESS LOGIC HERE.
This script only orchestrates API calls.
All rules live in the backend.

Usage:
    python scripts/flow_transport_lifecycle.py --customer-id cust-1 --driver-id drv-1
    python scripts/flow_transport_lifecycle.py --customer-id cust-1 --driver-id drv-1 --cancel-at in_transit

Flow:
    1. Place booking (as customer)
    2. Confirm booking (as admin)
    3. Assign driver (as admin)
    4. Accept order (as admin)
    5. Driver reports pickup_started, order_picked_up, in_transit, delivered
       (optionally: customer requests cancellation at --cancel-at, admin denies it)
    6. Complete booking (as admin)
"""

import argparse
import json
import sys

import httpx

BASE_URL = "http://localhost:8000"
ADMIN_ID = "admin-flow"

DRIVER_STEPS = ["pickup_started", "order_picked_up", "in_transit", "delivered"]


def api_request(actor_id: str, role: str, method: str, endpoint: str, data: dict | None = None) -> dict:
    """Make an API request on behalf of an actor."""
    headers = {"X-Actor-Id": actor_id, "X-Actor-Role": role}
    url = f"{BASE_URL}/api/v1/transport{endpoint}"

    if method == "GET":
        response = httpx.get(url, headers=headers, timeout=10.0)
    elif method == "POST":
        response = httpx.post(url, headers=headers, json=data or {}, timeout=10.0)
    else:
        raise ValueError(f"Unknown method: {method}")

    return {"status": response.status_code, "data": response.json() if response.text else {}}


def print_step(step: int, title: str):
    """Print step header."""
    print(f"\n{'='*60}")
    print(f"STEP {step}: {title}")
    print("="*60)


def print_result(result: dict, fields: list[str] | None = None):
    """Print result, optionally filtering fields."""
    if result["status"] >= 400:
        print(f"ERROR ({result['status']}): {json.dumps(result['data'], indent=2)}")
        return False

    print(f"Status: {result['status']}")
    if fields:
        filtered = {k: result["data"].get(k) for k in fields if k in result["data"]}
        print(json.dumps(filtered, indent=2))
    else:
        print(json.dumps(result["data"], indent=2))
    return True


SUMMARY_FIELDS = ["id", "tracking_id", "status", "driver_id", "version"]


def main():
    parser = argparse.ArgumentParser(description="Transport booking lifecycle flow")
    parser.add_argument("--customer-id", required=True, help="Customer placing the booking")
    parser.add_argument("--driver-id", required=True, help="Driver to assign")
    parser.add_argument("--city", default="Nashik", help="Pickup city")
    parser.add_argument("--cancel-at", choices=DRIVER_STEPS[:-1], help="Request (and deny) cancellation after this step")
    args = parser.parse_args()

    customer = (args.customer_id, "customer")
    admin = (ADMIN_ID, "admin")
    driver = (args.driver_id, "driver")

    # Step 1: Place booking
    print_step(1, "Place booking (as customer)")
    booking_result = api_request(*customer, "POST", "/bookings", {
        "customer_id": args.customer_id,
        "customer_name": "Flow Customer",
        "from_location": {"city": args.city, "district": args.city, "state": "Maharashtra"},
        "to_location": {"city": "Pune", "district": "Pune", "state": "Maharashtra"},
        "distance": 210,
        "final_amount": 5400,
        "cargo_description": "Onions, 40 bags",
    })
    if not print_result(booking_result, SUMMARY_FIELDS):
        sys.exit(1)

    booking_id = booking_result["data"]["id"]
    tracking_id = booking_result["data"]["tracking_id"]
    print(f"\nBooking placed: {booking_id} (tracking {tracking_id})")

    # Step 2: Confirm
    print_step(2, "Confirm booking (as admin)")
    if not print_result(api_request(*admin, "POST", f"/bookings/{booking_id}/confirm"), SUMMARY_FIELDS):
        sys.exit(1)

    # Step 3: Assign driver
    print_step(3, "Assign driver (as admin)")
    assign_result = api_request(*admin, "POST", f"/bookings/{booking_id}/assign-driver", {"driver_id": args.driver_id})
    if not print_result(assign_result, SUMMARY_FIELDS):
        sys.exit(1)

    # Step 4: Accept order
    print_step(4, "Accept order (as admin)")
    if not print_result(api_request(*admin, "POST", f"/bookings/{booking_id}/accept"), SUMMARY_FIELDS):
        sys.exit(1)

    # Step 5: Driver progress
    print_step(5, "Driver progress")
    for step in DRIVER_STEPS:
        progress = api_request(*driver, "POST", f"/bookings/{booking_id}/delivery-status", {
            "step": step,
            "location": args.city if step == "pickup_started" else "On route",
        })
        print(f"\n-> {step}")
        if not print_result(progress, SUMMARY_FIELDS):
            sys.exit(1)

        if step == args.cancel_at:
            print("\n-> customer requests cancellation")
            request_result = api_request(*customer, "POST", f"/bookings/{booking_id}/cancellation", {
                "reason": "Buyer postponed the order",
            })
            if not print_result(request_result, SUMMARY_FIELDS):
                sys.exit(1)

            print("\n-> admin denies cancellation")
            deny_result = api_request(*admin, "POST", f"/bookings/{booking_id}/cancellation/review", {
                "action": "deny",
                "notes": "Cargo already loaded",
            })
            if not print_result(deny_result, SUMMARY_FIELDS):
                sys.exit(1)

    # Step 6: Complete
    print_step(6, "Complete booking (as admin)")
    complete_result = api_request(*admin, "POST", f"/bookings/{booking_id}/complete")
    if not print_result(complete_result, SUMMARY_FIELDS + ["completed_at"]):
        sys.exit(1)

    # Final summary
    track_result = api_request(*customer, "GET", f"/track/{tracking_id}")
    print("\n" + "="*60)
    print("FULL FLOW COMPLETE")
    print("="*60)
    for entry in track_result["data"].get("tracking_steps", []):
        print(f"  {entry['timestamp']}  {entry['step']:<24} {entry.get('notes') or ''}")


if __name__ == "__main__":
    main()
