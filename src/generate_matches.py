import os
import sys

from ttcore import engine
from ttcore.exceptions import TournamentEngineError
from ttcore.models import Match, TournamentState
from storage import load_participants, load_settings, state_from_settings


def generate_tournament(players_file, settings_file) -> TournamentState:
    settings = load_settings(settings_file)
    participants = load_participants(players_file)
    state = state_from_settings(settings, participants)
    return engine.generate_bracket(state).state


def format_match(match: Match, names: dict) -> str:
    def label(participant_id):
        if participant_id is None:
            return "TBD"
        return names.get(participant_id) or participant_id

    if match.is_bye:
        return f"{label(match.winner)} (bye)"
    return f"{label(match.participant1)} vs {label(match.participant2)}"


def group_by_round(state: TournamentState) -> dict:
    """Matches keyed by round name, in match list order."""
    rounds = {}
    for match in state.matches:
        rounds.setdefault(engine.round_name(state, match), []).append(match)
    return rounds


def main():
    script_dir = os.path.dirname(__file__)
    base_dir = os.path.dirname(script_dir)

    # Use command line arguments if provided, otherwise use default paths
    players_file = sys.argv[1] if len(sys.argv) > 1 else os.path.join(base_dir, 'data', 'players.yaml')
    settings_file = sys.argv[2] if len(sys.argv) > 2 else os.path.join(base_dir, 'data', 'settings.yaml')

    try:
        state = generate_tournament(players_file, settings_file)
    except (TournamentEngineError, ValueError) as e:
        print(f"Could not generate matches: {e}", file=sys.stderr)
        sys.exit(1)

    names = {p.id: p.name for p in state.participants}
    first_round = True
    for round_label, matches in group_by_round(state).items():
        if not first_round:
            print()  # Add newline before each round except the first one
        print(f"# {round_label}")
        for match in matches:
            print(format_match(match, names))
        first_round = False


if __name__ == '__main__':
    main()
