import pytest
from datetime import timedelta

from lending.errors import (
    AlreadyReturned,
    BookNotFound,
    BorrowingNotFound,
    InvalidArgument,
    InvariantViolation,
    LimitExceeded,
    OutOfStock,
    UserInactive,
    UserNotFound,
)
from lending.models import BORROWED, RETURNED
from lending.result import attempt
from lending.service import LendingService


def available(catalog, book):
    return catalog.get_book(book.book_id).available_copies


def test_borrow_book_success(service, catalog, member, book, clock):
    borrowing = service.borrow_book(member.user_id, book.book_id, 14)

    assert borrowing.borrowing_id is not None
    assert borrowing.status == BORROWED
    assert borrowing.borrow_date == clock.now
    assert borrowing.due_date == clock.now + timedelta(days=14)
    assert borrowing.return_date is None
    assert available(catalog, book) == 4
    assert service.active_count(member.user_id) == 1


def test_borrow_uses_default_loan_period(service, member, book, clock):
    borrowing = service.borrow_book(member.user_id, book.book_id)
    assert borrowing.due_date - borrowing.borrow_date == timedelta(days=service.default_loan_days)


def test_borrowing_is_persisted(service, member, book):
    created = service.borrow_book(member.user_id, book.book_id, 7)
    stored = service.get_borrowing(created.borrowing_id)
    assert stored.user_id == member.user_id
    assert stored.book_id == book.book_id
    assert stored.due_date == created.due_date
    assert stored.status == BORROWED


def test_return_book_success(service, catalog, member, book, clock):
    borrowing = service.borrow_book(member.user_id, book.book_id, 14)
    copies_after_borrow = available(catalog, book)

    clock.advance(days=3)
    assert service.return_book(borrowing.borrowing_id) is True

    returned = service.get_borrowing(borrowing.borrowing_id)
    assert returned.status == RETURNED
    assert returned.return_date == clock.now
    assert available(catalog, book) == copies_after_borrow + 1
    assert service.active_count(member.user_id) == 0


def test_inactive_user_cannot_borrow(service, catalog, member, book):
    catalog.set_user_status(member.user_id, "inactive")

    with pytest.raises(UserInactive, match="user is not active"):
        service.borrow_book(member.user_id, book.book_id, 14)

    assert available(catalog, book) == 5
    assert service.borrowings_for_user(member.user_id) == []


def test_unknown_user_leaves_inventory_untouched(service, catalog, book):
    with pytest.raises(UserNotFound):
        service.borrow_book(999999, book.book_id, 14)

    assert available(catalog, book) == 5
    assert service.borrowings_for_book(book.book_id) == []


def test_unknown_book(service, member):
    with pytest.raises(BookNotFound):
        service.borrow_book(member.user_id, 999999, 14)
    assert service.active_count(member.user_id) == 0


@pytest.mark.parametrize("user_id, book_id", [(None, 1), (1, None), (None, None)])
def test_missing_ids_are_invalid(service, user_id, book_id):
    with pytest.raises(InvalidArgument):
        service.borrow_book(user_id, book_id, 14)


def test_invalid_argument_is_a_value_error(service, book):
    with pytest.raises(ValueError):
        service.borrow_book(None, book.book_id, 14)


@pytest.mark.parametrize("loan_days", [0, -3, 10_000, "14"])
def test_invalid_loan_days(service, catalog, member, book, loan_days):
    with pytest.raises(InvalidArgument):
        service.borrow_book(member.user_id, book.book_id, loan_days)
    assert available(catalog, book) == 5


def test_user_is_checked_before_book(service):
    # Neither exists; the user check comes first
    with pytest.raises(UserNotFound):
        service.borrow_book(424242, 434343, 14)


def test_out_of_stock(service, catalog, member, book):
    catalog.set_available_copies(book.book_id, 0)

    with pytest.raises(OutOfStock, match="no copies available"):
        service.borrow_book(member.user_id, book.book_id, 14)

    assert available(catalog, book) == 0
    assert service.active_count(member.user_id) == 0


def test_last_copy_then_out_of_stock(service, catalog, make_users, book):
    first, second = make_users(2)
    catalog.set_available_copies(book.book_id, 1)

    service.borrow_book(first.user_id, book.book_id, 14)
    with pytest.raises(OutOfStock):
        service.borrow_book(second.user_id, book.book_id, 14)

    assert available(catalog, book) == 0


def test_limit_blocks_sixth_borrowing(service, catalog, member, make_books):
    books = make_books(6)
    for b in books[:5]:
        service.borrow_book(member.user_id, b.book_id, 14)

    with pytest.raises(LimitExceeded, match="borrowing limit reached"):
        service.borrow_book(member.user_id, books[5].book_id, 14)

    assert available(catalog, books[5]) == 5
    assert service.active_count(member.user_id) == 5


def test_user_with_four_loans_can_take_a_fifth(service, member, make_books):
    books = make_books(5)
    for b in books[:4]:
        service.borrow_book(member.user_id, b.book_id, 14)

    service.borrow_book(member.user_id, books[4].book_id, 14)
    assert service.active_count(member.user_id) == 5


def test_returned_loans_do_not_count_towards_limit(service, member, make_books):
    books = make_books(6)
    loans = [service.borrow_book(member.user_id, b.book_id, 14) for b in books[:5]]
    service.return_book(loans[0].borrowing_id)

    service.borrow_book(member.user_id, books[5].book_id, 14)
    assert service.active_count(member.user_id) == 5


def test_custom_limit(db, clock, member, make_books):
    strict = LendingService(db, borrow_limit=2, clock=clock)
    books = make_books(3)
    strict.borrow_book(member.user_id, books[0].book_id, 14)
    strict.borrow_book(member.user_id, books[1].book_id, 14)
    with pytest.raises(LimitExceeded):
        strict.borrow_book(member.user_id, books[2].book_id, 14)


def test_return_twice_is_rejected(service, catalog, member, book):
    borrowing = service.borrow_book(member.user_id, book.book_id, 14)
    service.return_book(borrowing.borrowing_id)

    with pytest.raises(AlreadyReturned, match="already returned"):
        service.return_book(borrowing.borrowing_id)

    assert available(catalog, book) == 5
    assert service.get_borrowing(borrowing.borrowing_id).status == RETURNED


def test_return_unknown_borrowing(service):
    with pytest.raises(BorrowingNotFound):
        service.return_book(999999)


def test_return_rolls_back_when_inventory_is_inconsistent(service, catalog, member, book):
    borrowing = service.borrow_book(member.user_id, book.book_id, 14)
    # Shelf count repaired by hand while the copy is still out
    catalog.set_available_copies(book.book_id, 5)

    with pytest.raises(InvariantViolation):
        service.return_book(borrowing.borrowing_id)

    stored = service.get_borrowing(borrowing.borrowing_id)
    assert stored.status == BORROWED
    assert stored.return_date is None
    assert available(catalog, book) == 5


def test_two_borrows_one_return_scenario(service, catalog, member, book):
    b1 = service.borrow_book(member.user_id, book.book_id, 14)
    b2 = service.borrow_book(member.user_id, book.book_id, 7)
    assert available(catalog, book) == 3

    service.return_book(b1.borrowing_id)

    assert available(catalog, book) == 4
    assert service.get_borrowing(b1.borrowing_id).status == RETURNED
    assert service.get_borrowing(b2.borrowing_id).status == BORROWED


@pytest.mark.parametrize("borrows, returns", [(1, 0), (3, 1), (5, 2), (5, 5)])
def test_inventory_conservation(service, catalog, member, book, borrows, returns):
    capacity = book.total_copies
    loans = []
    for _ in range(borrows):
        loans.append(service.borrow_book(member.user_id, book.book_id, 14))
        assert 0 <= available(catalog, book) <= capacity
    for loan in loans[:returns]:
        service.return_book(loan.borrowing_id)
        assert 0 <= available(catalog, book) <= capacity

    assert available(catalog, book) == capacity - borrows + returns


def test_queries_by_user_and_book(service, make_users, make_books):
    alice, bob = make_users(2)
    first, second = make_books(2)
    service.borrow_book(alice.user_id, first.book_id, 14)
    service.borrow_book(alice.user_id, second.book_id, 7)
    service.borrow_book(bob.user_id, first.book_id, 14)

    assert len(service.borrowings_for_user(alice.user_id)) == 2
    assert len(service.borrowings_for_user(bob.user_id)) == 1
    assert {b.user_id for b in service.borrowings_for_book(first.book_id)} == {alice.user_id, bob.user_id}


def test_attempt_reports_rejections_by_code(service, catalog, member, book):
    catalog.set_available_copies(book.book_id, 0)

    outcome = attempt(service.borrow_book, member.user_id, book.book_id, 14)
    assert not outcome.ok
    assert outcome.code == "out_of_stock"
    with pytest.raises(OutOfStock):
        outcome.unwrap()

    catalog.set_available_copies(book.book_id, 1)
    outcome = attempt(service.borrow_book, member.user_id, book.book_id, 14)
    assert outcome.ok
    assert outcome.unwrap().status == BORROWED
