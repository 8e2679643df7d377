from .tokens import DEFAULT_CODE_LENGTH, normalize_code


def project(store, gs):
    """Snapshot of a session for polling clients.

    Built from three separate reads (session row, member list, submission
    count). A join or submit landing between them can make the counts
    briefly disagree; the next poll converges.
    """
    members = store.list_members(gs.id)
    submitted = store.count_submissions(gs.id)
    payload = gs.to_dict()
    order = payload['reveal_order']
    if order:
        payload['reveal_index'] = min(max(payload['reveal_index'], 0), len(order) - 1)
    else:
        payload['reveal_index'] = 0
    payload['members'] = [m.to_dict() for m in members]
    payload['member_count'] = len(members)
    payload['submitted_count'] = submitted
    return payload


def project_by_code(store, raw_code, code_length=DEFAULT_CODE_LENGTH):
    gs = store.get_session_by_code(normalize_code(raw_code, code_length))
    return project(store, gs)
