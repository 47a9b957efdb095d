"""
Backfill Script: Semantic Vectors for Existing Bank Questions
Finds all non-deleted questions without a semantic_vector and embeds them, so the
redundancy check can use cosine similarity instead of token overlap.

Usage:
    python -m scripts.backfill_semantic_vectors [--dry-run] [--batch-size=100]
"""

from dotenv import load_dotenv
from tqdm import tqdm

# Load environment variables
load_dotenv()

from database import crud
from database.database import SessionLocal


def backfill_semantic_vectors(db, embedder, dry_run=False, batch_size=100):
    """
    Embed every question that has no semantic vector yet.

    Args:
        db: Database session
        embedder: object with generate_embeddings_batch(texts, batch_size, show_progress)
        dry_run: If True, only report what would be embedded
        batch_size: Number of questions per embedding batch

    Returns:
        {"found": n, "embedded": n, "failed": n}
    """
    print("=" * 70)
    print("SEMANTIC VECTOR BACKFILL")
    print("=" * 70)

    pending = crud.get_questions_missing_vectors(db)
    stats = {"found": len(pending), "embedded": 0, "failed": 0}

    if not pending:
        print("\n✓ No questions to backfill. Every question already has a vector!")
        return stats

    print(f"\nFound {len(pending)} question(s) without a semantic vector")

    if dry_run:
        print("\n[DRY RUN MODE] - No changes will be made")
        topic_counts = {}
        for q in pending:
            topic_counts[q.topic] = topic_counts.get(q.topic, 0) + 1
        for topic, count in sorted(topic_counts.items()):
            print(f"  {topic}: {count} question(s)")
        return stats

    batches = [pending[i:i + batch_size] for i in range(0, len(pending), batch_size)]
    for batch in tqdm(batches, desc="Backfilling", disable=len(batches) < 2):
        vectors = embedder.generate_embeddings_batch(
            [q.text for q in batch], batch_size=batch_size, show_progress=False
        )
        for question, vector in zip(batch, vectors):
            # Zero vector = failed call; leave NULL so the next run retries it
            if vector and any(x != 0.0 for x in vector):
                question.semantic_vector = vector
                stats["embedded"] += 1
            else:
                stats["failed"] += 1
        db.commit()

    print("\n" + "=" * 70)
    print("BACKFILL COMPLETE")
    print("=" * 70)
    print(f"✓ Embedded: {stats['embedded']} question(s)")
    if stats["failed"] > 0:
        print(f"✗ Failed: {stats['failed']} question(s)")
    return stats


if __name__ == "__main__":
    import sys

    from embeddings import EmbeddingGenerator

    dry_run = "--dry-run" in sys.argv or "-d" in sys.argv

    batch_size = 100
    for arg in sys.argv:
        if arg.startswith("--batch-size="):
            batch_size = int(arg.split("=")[1])

    db = SessionLocal()
    try:
        backfill_semantic_vectors(
            db,
            None if dry_run else EmbeddingGenerator(),
            dry_run=dry_run,
            batch_size=batch_size,
        )
    finally:
        db.close()
