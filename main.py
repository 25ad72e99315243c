from time import sleep, perf_counter

from lazy import LazySequence
from utils import setup_logging

setup_logging("INFO")


def expensive_score(record):
    # Simulate a costly step so laziness is visible
    print(f"  scoring {record['name']} ...")
    sleep(0.05)
    return record["score"]


records = [
    {"name": "alpha", "score": 5, "category": "x"},
    {"name": "bravo", "score": 9, "category": "y"},
    {"name": "charlie", "score": 9, "category": "x"},
    {"name": "delta", "score": 1, "category": "z"},
    {"name": "echo", "score": 7, "category": "y"},
]

print("\n--- Demo: laziness (no work until pulled) ---")
pipeline = (
    LazySequence.of(records)
    .map(lambda r: dict(r, weighted=expensive_score(r) * 10))
    .filter(lambda r: r["weighted"] > 20)
    .take(2)
)
print("Constructed pipeline. No output yet (nothing computed).")
t0 = perf_counter()
out = pipeline.to_list()
t1 = perf_counter()
print(f"Result: {[r['name'] for r in out]}")
print(f"Time: {t1 - t0:.2f}s (only the records needed for two matches were scored)\n")

print("--- Demo: bounding an infinite source ---")
evens = LazySequence.counting(0).filter(lambda n: n % 2 == 0)
print(f"First five evens: {evens.take(5).to_list()}")
print(f"Index of first even above 100: {evens.find_index(lambda n: n > 100)}\n")

print("--- Demo: top-k keeps first-occurring ties in front ---")
best = LazySequence.of(records).top_k(lambda r: r["score"], 2)
print(f"Top 2: {[(r['name'], r['score']) for r in best]}\n")

print("--- Demo: group by category ---")
for category, members in LazySequence.of(records).group_by(lambda r: r["category"]).items():
    print(f"  {category}: {[r['name'] for r in members]}")
print()

print("--- Demo: batching ---")
for b in LazySequence.counting(1).batch(3).take(2):
    print("  batch:", b)
