import csv
import io

from alpharush.game.export import CSV_HEADER, export_rows, rows_to_csv
from alpharush.game.session import RoomSession


def played_session():
    s = RoomSession('ABC1', 'alice', 'Alice', letter_picker=lambda used: 'B')
    s.add_player('bob', 'Bob')
    s.add_player('cara', 'Cara')
    s.start('alice')
    s.submit('cara', {'City': 'Berlin'})
    s.remove_player('cara')
    s.submit('alice', {'Name': 'Bob', 'City': 'Berlin', 'Thing': 'Bo', 'Animal': 'Bear'})
    s.submit('bob', {'Name': 'Ben', 'City': 'Berlin'})
    s.invalidate('alice', 1, 'alice', 'Animal', True)
    return s


def test_one_row_per_round_player_category():
    rows = export_rows(played_session())
    assert len(rows) == 3 * 4
    by_key = {(r['playerId'], r['category']): r for r in rows}

    assert by_key[('alice', 'Name')]['points'] == 10
    assert by_key[('alice', 'City')]['points'] == 5
    assert by_key[('alice', 'Thing')]['points'] == 0
    assert by_key[('alice', 'Animal')] == {
        'round': 1,
        'letter': 'B',
        'playerId': 'alice',
        'playerName': 'Alice',
        'category': 'Animal',
        'answer': 'Bear',
        'invalid': True,
        'points': 0,
    }
    # Players who left keep their rows, labelled with the name they had.
    assert by_key[('cara', 'City')]['playerName'] == 'Cara'
    assert by_key[('cara', 'City')]['points'] == 5


def test_rows_are_recomputed_from_the_ledger():
    s = played_session()
    s.room.players['alice'].score = 999
    rows = export_rows(s)
    assert sum(r['points'] for r in rows if r['playerId'] == 'alice') == 15


def test_csv_output():
    text = rows_to_csv(export_rows(played_session()))
    parsed = list(csv.reader(io.StringIO(text)))
    assert parsed[0] == CSV_HEADER
    assert parsed[4] == ['1', 'B', 'alice', 'Alice', 'Animal', 'Bear', 'yes', '0']
    assert len(parsed) == 1 + 12
