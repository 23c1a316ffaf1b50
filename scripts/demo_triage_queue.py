"""
In-process demo of the triage queue.

Simulates a stream of arrivals with random vitals, advances a simulated clock,
recomputes priorities, calls patients and feeds back their actual waits.

Run: python scripts/demo_triage_queue.py [--patients 12] [--seed 7]
"""
import argparse
import asyncio
import logging
import random
from datetime import datetime, timedelta

from triage_service.core.exceptions import EmptyQueueError
from triage_service.core.triage_service import TriageService
from triage_service.scoring.normalizer import VitalsNormalizer

logging.basicConfig(level=logging.WARNING, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


class SimulatedClock:
    def __init__(self):
        self.now = datetime(2024, 1, 1, 8, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float) -> None:
        self.now += timedelta(minutes=minutes)


def random_vitals(rng: random.Random) -> dict:
    """Vitals drawn around normal, with an occasional sick patient."""
    sick = rng.random() < 0.3
    systolic = rng.gauss(95 if sick else 122, 12)
    return {
        "Heart_Rate": round(rng.gauss(118 if sick else 78, 10)),
        "Respiratory_Rate": round(rng.gauss(25 if sick else 15, 3)),
        "Body_Temperature": round(rng.gauss(38.8 if sick else 36.9, 0.4), 1),
        "Oxygen_Saturation": round(min(100, rng.gauss(91 if sick else 97.5, 2))),
        "Systolic_Blood_Pressure": round(systolic),
        "Diastolic_Blood_Pressure": round(systolic * rng.uniform(0.58, 0.7)),
        "Age": rng.randint(18, 90),
        "Gender": rng.randint(0, 1),
        "Weight_kg": round(rng.uniform(50, 110), 1),
        "Height_m": round(rng.uniform(1.5, 1.95), 2)
    }


def print_queue(service: TriageService, title: str):
    print(f"\n{'='*70}\n{title}  ({service.get_stats()['queue']['total']} waiting)\n{'='*70}")
    for entry in service.get_queue():
        print(f"  #{entry.queue_position:<3} {entry.patient_id:<16} {entry.risk_level.value:<6} "
              f"score={entry.priority_score:>7.2f}  wait~{entry.estimated_wait_time}min")


async def run_demo(patients: int, seed: int):
    rng = random.Random(seed)
    clock = SimulatedClock()
    service = TriageService(normalizer=VitalsNormalizer("C"), clock=clock)
    arrived_at = {}

    for i in range(patients):
        patient_id = f"DEMO-{i + 1:03d}"
        result = await service.submit_assessment({**random_vitals(rng), "patient_id": patient_id})
        arrived_at[patient_id] = clock()
        print(f"Arrival {patient_id}: {result.risk_level.value} "
              f"(confidence {result.confidence_score:.2f}, score {result.priority_score:.2f})")
        clock.advance(rng.uniform(2, 8))

    print_queue(service, "Queue after arrivals")

    clock.advance(20)
    await service.update_priorities()
    print_queue(service, "Queue after 20 minutes and a priority update")

    while True:
        try:
            entry = await service.get_next_patient()
        except EmptyQueueError:
            break
        waited = (clock() - arrived_at[entry.patient_id]).total_seconds() / 60
        await service.submit_feedback(
            entry.patient_id,
            actual_wait_time=round(waited, 1),
            satisfaction_score=round(max(0.0, 1.0 - waited / 180), 2)
        )
        clock.advance(rng.uniform(3, 12))

    print(f"\n{'='*70}\nCalibration after all patients were seen\n{'='*70}")
    calibration = service.get_stats()["calibration"]
    for tier, stats in calibration["tiers"].items():
        print(f"  {tier:<6} {stats}")
    print(f"  parameters: {calibration['parameters']}")


def main():
    parser = argparse.ArgumentParser(description="Triage queue demo")
    parser.add_argument("--patients", type=int, default=12)
    parser.add_argument("--seed", type=int, default=7)
    args = parser.parse_args()

    asyncio.run(run_demo(args.patients, args.seed))


if __name__ == "__main__":
    main()
