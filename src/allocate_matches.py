import os
import sys

from ttcore import engine
from ttcore.changes import MatchActivated
from storage import DATA_DIR, StaleSnapshotError, TournamentStore


def allocate(store: TournamentStore):
    """Auto-assign free tables for the stored tournament and persist the result."""
    with store.transaction() as (state, version):
        result = engine.auto_assign_tables(state)
        store.apply_changes(result.changes, expected_version=version)
    return result


def main():
    data_dir = sys.argv[1] if len(sys.argv) > 1 else DATA_DIR
    if not os.path.exists(os.path.join(data_dir, 'tournament.yaml')):
        print(f"No tournament found in {data_dir}. Generate the matches first.", file=sys.stderr)
        return

    store = TournamentStore(data_dir)
    try:
        result = allocate(store)
    except StaleSnapshotError as e:
        print(f"Tournament changed while allocating, try again: {e}", file=sys.stderr)
        sys.exit(1)

    assignments = [c for c in result.changes if isinstance(c, MatchActivated)]
    if not assignments:
        print("No ready matches or no free tables.")
        return

    names = {p.id: p.name or p.id for p in result.state.participants}
    for change in sorted(assignments, key=lambda c: c.table):
        match = result.state.find_match(change.match_id)
        print(f"Table {change.table}: {names.get(match.participant1)} vs {names.get(match.participant2)} ({match.id})")


if __name__ == '__main__':
    main()
