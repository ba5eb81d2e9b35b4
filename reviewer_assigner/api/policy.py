"""
Политика выбора ревьюверов.

Порядок ростера: участники команды сортируются по возрастанию user_id
(обычное строковое сравнение). Из отсортированного ростера берется
первый подходящий кандидат, поэтому выбор воспроизводим.

Подходящий кандидат: активен, не автор PR, еще не назначен
и не является заменяемым ревьювером.
"""
from typing import Iterable, List, Optional

DEFAULT_MAX_REVIEWERS = 2


def roster_order(members: Iterable) -> list:
    return sorted(members, key=lambda member: member.user_id)


def is_eligible(candidate, author_id: str, assigned: Iterable[str], replaced: Optional[str] = None) -> bool:
    if not candidate.is_active:
        return False
    if candidate.user_id == author_id or candidate.user_id == replaced:
        return False
    return candidate.user_id not in set(assigned)


def next_reviewer(roster: Iterable, author_id: str, assigned: Iterable[str],
                  replaced: Optional[str] = None) -> Optional[str]:
    """
    Возвращает user_id первого подходящего кандидата или None
    """
    assigned = list(assigned)
    for candidate in roster_order(roster):
        if is_eligible(candidate, author_id, assigned, replaced):
            return candidate.user_id
    return None


def pick_reviewers(roster: Iterable, author_id: str, limit: int = DEFAULT_MAX_REVIEWERS) -> List[str]:
    """
    Заполняет до limit слотов повторным выбором; неполный и пустой
    список допустимы
    """
    roster = list(roster)
    selected = []
    while len(selected) < limit:
        reviewer_id = next_reviewer(roster, author_id, selected)
        if reviewer_id is None:
            break
        selected.append(reviewer_id)
    return selected
