import pytest

from alpharush.game.errors import InvalidPayload, InvalidState, NotFound, NotHost, RoomFull, WrongSecret
from alpharush.game.letters import LETTERS
from alpharush.game.session import RoomSession


ALICE = {'Name': 'Bob', 'City': 'Berlin', 'Thing': 'Ball', 'Animal': 'Bear'}
BOB = {'Name': 'Ben', 'City': 'Berlin', 'Thing': 'Ball', 'Animal': 'Bat'}


def in_order(used):
    return LETTERS[len(list(used))]


def names(events):
    return [e.name for e in events]


def scores(session):
    return {p.id: p.score for p in session.room.players.values()}


@pytest.fixture()
def session():
    s = RoomSession('ABC1', 'alice', 'Alice', letter_picker=lambda used: 'B')
    s.add_player('bob', 'Bob')
    return s


def test_end_to_end_round(session):
    events = session.start('alice')
    assert names(events) == ['roundStarted', 'roomUpdate']
    assert events[0].payload == {'roomId': 'ABC1', 'round': 1, 'letter': 'B', 'totalRounds': 26}
    assert session.state == 'round_active'

    events = session.submit('alice', ALICE)
    assert names(events) == ['playerSubmitted']
    # The notice never carries the answers.
    assert 'answers' not in events[0].payload
    assert events[0].payload['playerId'] == 'alice'

    events = session.submit('bob', BOB)
    assert names(events) == ['playerSubmitted', 'roundScored', 'roomUpdate']
    scored = events[1].payload
    # Name and Animal unique (10 each), City and Thing shared (5 each).
    assert scored['roundScores'] == {'alice': 30, 'bob': 30}
    assert scored['answers']['alice']['points'] == {'Name': 10, 'City': 5, 'Thing': 5, 'Animal': 10}
    assert scores(session) == {'alice': 30, 'bob': 30}
    assert session.state == 'round_scored'
    assert session.room.round == 1


def test_scoring_is_idempotent(session):
    session.start('alice')
    session.submit('alice', ALICE)
    first = session.score_round(1)
    assert names(first) == ['roundScored', 'roomUpdate']
    totals = scores(session)

    assert session.score_round(1) == []
    # Full submission after a forced score does not score twice either.
    with pytest.raises(InvalidState):
        session.submit('bob', BOB)
    assert scores(session) == totals


def test_force_score_counts_drafts(session):
    session.start('alice')
    session.draft_update('bob', {'Name': 'Ben'})
    session.draft_update('bob', {'City': 'Bonn'})
    assert session.public_state()['players'][1]['submitted'] is False
    events = session.score_round(caller_id='alice')
    assert events[0].payload['roundScores'] == {'alice': 0, 'bob': 20}


def test_drafts_do_not_trigger_auto_scoring(session):
    session.start('alice')
    session.draft_update('alice', ALICE)
    session.draft_update('bob', BOB)
    assert session.state == 'round_active'


def test_repeat_submit_overwrites(session):
    session.start('alice')
    session.add_player('cara', 'Cara')
    session.submit('alice', {'Name': 'Bill'})
    session.submit('alice', {'Name': 'Brad'})
    sub = session.ledger.get(1).submissions['alice']
    assert sub.answers['Name'] == 'Brad'
    assert session.state == 'round_active'


def test_partial_resubmit_drops_earlier_answers(session):
    session.start('alice')
    session.submit('alice', {'Name': 'Bob', 'City': 'Berlin'})
    session.submit('alice', {'Name': 'Ben'})
    events = session.score_round(caller_id='alice')
    assert events[0].payload['answers']['alice']['points'] == {'Name': 10, 'City': 0, 'Thing': 0, 'Animal': 0}
    assert scores(session)['alice'] == 10


def test_long_answers_are_kept_whole_or_rejected(session):
    session.start('alice')
    # Same first 59 characters, still two different answers.
    session.submit('alice', {'Name': 'B' + 'x' * 58 + 'alpha'})
    session.submit('bob', {'Name': 'B' + 'x' * 58 + 'omega'})
    assert session.ledger.get(1).is_scored
    assert scores(session) == {'alice': 10, 'bob': 10}


def test_oversized_answer_rejects_the_payload(session):
    session.start('alice')
    session.submit('alice', {'Name': 'Bob'})
    with pytest.raises(InvalidPayload) as exc:
        session.submit('alice', {'Name': 'B' + 'x' * 64})
    assert exc.value.code == 'answer_too_long'
    assert session.ledger.get(1).submissions['alice'].answers['Name'] == 'Bob'


def test_answers_rejected_outside_active_round(session):
    with pytest.raises(InvalidState):
        session.submit('alice', ALICE)
    session.start('alice')
    with pytest.raises(InvalidState) as exc:
        session.submit('alice', ALICE, round_no=2)
    assert exc.value.code == 'stale_round'
    with pytest.raises(NotFound):
        session.submit('mallory', ALICE)


@pytest.mark.parametrize('caller', ['bob', 'cara', 'nobody', ''])
def test_host_only_actions(caller):
    s = RoomSession('R', 'alice', 'Alice', letter_picker=in_order)
    s.add_player('bob', 'Bob')
    s.add_player('cara', 'Cara')
    with pytest.raises(NotHost):
        s.start(caller)
    s.start('alice')
    s.submit('alice', {'Name': 'Anna'})
    s.score_round()
    with pytest.raises(NotHost):
        s.next_round(caller)
    with pytest.raises(NotHost):
        s.invalidate(caller, 1, 'alice', 'Name', True)


def test_start_only_from_idle(session):
    session.start('alice')
    with pytest.raises(InvalidState):
        session.start('alice')


def test_next_round_requires_scored_round(session):
    with pytest.raises(InvalidState):
        session.next_round('alice')
    session.start('alice')
    with pytest.raises(InvalidState):
        session.next_round('alice')


def test_invalidate_and_restore(session):
    session.start('alice')
    session.submit('alice', ALICE)
    session.submit('bob', BOB)
    before = scores(session)

    events = session.invalidate('alice', 1, 'bob', 'City', True)
    assert names(events) == ['roundScored', 'roomUpdate']
    assert events[0].payload['recomputed'] is True
    after = scores(session)
    assert after['bob'] == before['bob'] - 5
    # Alice's Berlin is now the only valid one.
    assert after['alice'] == before['alice'] + 5

    session.invalidate('alice', 1, 'bob', 'City', False)
    assert scores(session) == before


def test_invalidate_toggles_when_flag_omitted(session):
    session.start('alice')
    session.submit('alice', ALICE)
    session.submit('bob', BOB)
    session.invalidate('alice', 1, 'alice', 'Name')
    assert session.ledger.get(1).submissions['alice'].invalid['Name'] is True
    session.invalidate('alice', 1, 'alice', 'Name')
    assert session.ledger.get(1).submissions['alice'].invalid['Name'] is False


def test_invalidate_never_increases_target_score():
    s = RoomSession('R', 'a', 'A', letter_picker=in_order)
    s.add_player('b', 'B')
    s.start('a')
    s.submit('a', {'Name': 'Anna', 'City': 'Athens', 'Thing': 'Ax', 'Animal': 'Ant'})
    s.submit('b', {'Name': 'Anna', 'City': 'Austin', 'Thing': 'Axe', 'Animal': 'Ant'})
    s.next_round('a')
    s.submit('a', {'Name': 'Bill'})
    s.submit('b', {'Name': 'Bill'})
    for cat in ('Name', 'City', 'Thing', 'Animal'):
        before = scores(s)['a']
        s.invalidate('a', 1, 'a', cat, True)
        assert scores(s)['a'] <= before
        s.invalidate('a', 1, 'a', cat, False)
        assert scores(s)['a'] == before


def test_invalidate_errors(session):
    session.start('alice')
    session.submit('alice', ALICE)
    with pytest.raises(InvalidState):
        session.invalidate('alice', 1, 'alice', 'Name', True)
    session.score_round()
    with pytest.raises(NotFound):
        session.invalidate('alice', 1, 'bob', 'Name', True)
    with pytest.raises(NotFound):
        session.invalidate('alice', 5, 'alice', 'Name', True)
    with pytest.raises(InvalidPayload):
        session.invalidate('alice', 1, 'alice', 'Color', True)
    assert session.ledger.get(1).submissions['alice'].invalid == {
        'Name': False, 'City': False, 'Thing': False, 'Animal': False,
    }


def test_full_game_ends_with_sorted_totals():
    s = RoomSession('R', 'alice', 'Alice', letter_picker=in_order)
    s.add_player('bob', 'Bob')
    s.add_player('cara', 'Cara')
    s.start('alice')
    for round_no in range(1, 27):
        letter = s.room.letter
        assert letter == LETTERS[round_no - 1]
        bob_word = {'Name': letter + 'obby'} if round_no == 1 else {}
        s.submit('alice', {})
        s.submit('bob', bob_word)
        s.submit('cara', {})
        assert s.state == 'round_scored'
        events = s.next_round('alice')
        if round_no < 26:
            assert names(events) == ['roundStarted', 'roomUpdate']

    assert names(events) == ['gameOver', 'roomUpdate']
    totals = events[0].payload['totals']
    assert [t['playerId'] for t in totals] == ['bob', 'alice', 'cara']
    assert totals[0]['score'] == 10
    assert s.state == 'game_over'
    assert len(s.room.used_letters) == 26
    with pytest.raises(InvalidState):
        s.next_round('alice')


def test_membership(session):
    session.room.max_players = 3
    session.room.secret = 'pw'
    with pytest.raises(WrongSecret):
        session.add_player('cara', 'Cara', 'nope')
    session.add_player('cara', 'Cara', 'pw')
    with pytest.raises(RoomFull):
        session.add_player('dan', 'Dan', 'pw')
    # Rejoining with the same connection just renames.
    session.add_player('cara', 'Cara2')
    assert session.room.players['cara'].name == 'Cara2'


def test_host_leaves_next_in_join_order_takes_over(session):
    session.add_player('cara', 'Cara')
    session.remove_player('alice')
    assert session.room.host_id == 'bob'
    session.remove_player('bob')
    assert session.room.host_id == 'cara'
    assert session.remove_player('cara') == []
    assert session.room.host_id is None
    assert session.is_empty()


def test_leaving_can_complete_a_round(session):
    session.add_player('cara', 'Cara')
    session.start('alice')
    session.submit('alice', ALICE)
    session.submit('bob', BOB)
    events = session.remove_player('cara')
    assert names(events) == ['roomUpdate', 'roundScored', 'roomUpdate']


def test_departed_submission_stays_in_ledger(session):
    session.add_player('cara', 'Cara')
    session.start('alice')
    session.submit('cara', {'City': 'Berlin'})
    session.remove_player('cara')
    session.submit('alice', ALICE)
    events = session.submit('bob', BOB)
    # Cara's Berlin still makes Berlin a three-way duplicate.
    assert events[1].payload['answers']['cara']['points']['City'] == 5
    assert events[1].payload['roundScores'] == {'alice': 30, 'bob': 30, 'cara': 5}
    assert scores(session) == {'alice': 30, 'bob': 30}


def test_public_state_hides_secret(session):
    session.room.secret = 'pw'
    state = session.public_state()
    assert state['hasSecret'] is True
    assert 'pw' not in str(state)
    assert state['hostId'] == 'alice'
    assert [p['id'] for p in state['players']] == ['alice', 'bob']
