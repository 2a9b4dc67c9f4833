from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Callable, Generic, List, Optional, Sequence, TypeVar, Union

from rich.console import Console

from exceptions import (
    LoanLedgerError,
    LoanValidationError,
    InvalidReturnDateError,
)


# Logging configuration
logger = logging.getLogger("library_ledger")
logger.setLevel(logging.INFO)

if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


# Demo defaults (overridable from the command line)
DEFAULT_LIBRARY_NAME = "City Library"
DEFAULT_REPORT_DATE = date(2025, 11, 25)
DEFAULT_READER = "Andrii"
DEFAULT_BOOK = "1984"

MONEY_Q = Decimal("0.01")
CURRENCY = "UAH"

T = TypeVar("T")
DateLike = Union[date, datetime]


def money(x: Decimal) -> Decimal:
    return x.quantize(MONEY_Q, rounding=ROUND_HALF_UP)


def _as_date(value: DateLike, name: str) -> date:
    """
    Truncates a date or datetime to its calendar day.

    Raises:
        LoanValidationError: If the value is neither a date nor a datetime.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise LoanValidationError(f"{name} must be a datetime.date (got {value!r})")


def _as_rate(value: Union[Decimal, int, float, str]) -> Decimal:
    if isinstance(value, float):
        value = str(value)
    try:
        rate = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise LoanValidationError(f"Invalid daily_rate: {value!r}")
    if not rate.is_finite():
        raise LoanValidationError(f"daily_rate must be finite (got {rate})")
    return rate


# Domain Models
@dataclass
class Loan:
    """
    Represents one book loaned to one reader.

    Identity, dates, title, reader and rate are fixed at construction.
    The return date is the only field changed afterwards, and only through
    set_return_date(); assigning the attributes directly bypasses validation.

    Attributes:
        loan_id (int): Caller-assigned identifier (uniqueness not enforced).
        book_title (str): Title of the loaned book.
        reader_name (str): Name of the reader.
        loan_date (date): Date the book was handed out.
        due_date (date): Last day the book may be kept without a fine.
        daily_rate (Decimal): Fine charged per overdue day.
        return_date (Optional[date]): Date the book came back, if it did.
    """
    loan_id: int
    book_title: str
    reader_name: str
    loan_date: date
    due_date: date
    daily_rate: Decimal
    return_date: Optional[date] = field(default=None, init=False)

    def __post_init__(self) -> None:
        if not self.book_title or not self.book_title.strip():
            raise LoanValidationError("book_title cannot be empty")
        if not self.reader_name or not self.reader_name.strip():
            raise LoanValidationError("reader_name cannot be empty")

        self.loan_date = _as_date(self.loan_date, "loan_date")
        self.due_date = _as_date(self.due_date, "due_date")
        if self.due_date < self.loan_date:
            raise LoanValidationError(
                f"due_date {self.due_date} cannot be before loan_date {self.loan_date}"
            )

        self.daily_rate = _as_rate(self.daily_rate)

    @property
    def is_returned(self) -> bool:
        return self.return_date is not None

    def set_return_date(self, return_date: DateLike) -> None:
        """
        Records the date the book came back, replacing any earlier value.

        Raises:
            InvalidReturnDateError: If the date is before the loan date.
        """
        return_date = _as_date(return_date, "return_date")
        if return_date < self.loan_date:
            logger.warning(
                "Rejected return date | loan_id=%s return_date=%s loan_date=%s",
                self.loan_id, return_date, self.loan_date,
            )
            raise InvalidReturnDateError(
                f"Invalid return date ({return_date:%d.%m.%Y}) for book "
                f"\"{self.book_title}\": it is before the loan date ({self.loan_date:%d.%m.%Y})."
            )

        self.return_date = return_date
        logger.info("Return date set | loan_id=%s return_date=%s", self.loan_id, return_date)

    def get_overdue_days(self, as_of: Optional[DateLike] = None) -> int:
        """
        Returns whole days past the due date, never negative.

        The reference date is the return date when set, otherwise ``as_of``,
        otherwise today.
        """
        if self.return_date is not None:
            reference = self.return_date
        elif as_of is not None:
            reference = _as_date(as_of, "as_of")
        else:
            reference = date.today()

        if reference <= self.due_date:
            return 0
        return (reference - self.due_date).days

    def get_fine(self, as_of: Optional[DateLike] = None) -> Decimal:
        return self.get_overdue_days(as_of) * self.daily_rate

    def __str__(self) -> str:
        if self.return_date is not None:
            status = f"returned on {self.return_date:%d.%m.%Y}"
        else:
            status = "still out"
        return (
            f"#{self.loan_id}: \"{self.book_title}\" for {self.reader_name}, "
            f"loaned {self.loan_date:%d.%m.%Y}, due {self.due_date:%d.%m.%Y}, {status}"
        )


class Repository(Generic[T]):
    """
    Ordered in-memory store for items of one type.

    Insertion order is kept and duplicates are allowed. Queries return fresh
    lists, so callers can never mutate the underlying storage.
    """

    def __init__(self) -> None:
        self._items: List[T] = []

    def __len__(self) -> int:
        return len(self._items)

    def add(self, item: T) -> None:
        self._items.append(item)

    def remove(self, item: T) -> bool:
        """
        Removes the first item equal to ``item``.

        Returns:
            bool: False if nothing matched.
        """
        try:
            self._items.remove(item)
        except ValueError:
            return False
        return True

    def get_all(self) -> List[T]:
        return list(self._items)

    def where(self, predicate: Callable[[T], bool]) -> List[T]:
        return [item for item in self._items if predicate(item)]

    def find(self, predicate: Callable[[T], bool]) -> Optional[T]:
        return next((item for item in self._items if predicate(item)), None)


# Library Core
class Library:
    """
    Named library that owns the ledger of its loans.

    Every query is evaluated against the current loans on each call;
    nothing is cached.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._loans: Repository[Loan] = Repository()


    # Public API

    def add_loan(self, loan: Loan) -> None:
        logger.info(
            "add_loan called | loan_id=%s title=%s reader=%s",
            loan.loan_id, loan.book_title, loan.reader_name,
        )
        self._loans.add(loan)

    def get_all_loans(self) -> List[Loan]:
        return self._loans.get_all()

    def find_loan(self, loan_id: int) -> Optional[Loan]:
        """
        Returns the first loan with the given id, or None.
        """
        return self._loans.find(lambda l: l.loan_id == loan_id)

    def get_loans_by_reader(self, reader_name: str) -> List[Loan]:
        """
        Returns loans whose reader matches ``reader_name``, ignoring case.
        """
        wanted = reader_name.lower()
        return self._loans.where(lambda l: l.reader_name.lower() == wanted)

    def get_loans_by_book(self, book_title: str) -> List[Loan]:
        """
        Returns loans whose title matches ``book_title``, ignoring case.
        """
        wanted = book_title.lower()
        return self._loans.where(lambda l: l.book_title.lower() == wanted)

    def get_overdue_loans(self, as_of: Optional[DateLike] = None) -> List[Loan]:
        return self._loans.where(lambda l: l.get_overdue_days(as_of) > 0)

    def get_total_fine(self, as_of: Optional[DateLike] = None) -> Decimal:
        """
        Sums the fines of all loans.

        Returns:
            Decimal: Decimal("0") for a library without loans.
        """
        total = Decimal("0")
        for loan in self._loans.get_all():
            total += loan.get_fine(as_of)
        return total

    def get_average_fine_for_overdue(self, as_of: Optional[DateLike] = None) -> Decimal:
        """
        Averages the fines of loans whose fine is positive.

        Returns:
            Decimal: Decimal("0") if no loan carries a fine.
        """
        fines = [f for f in (l.get_fine(as_of) for l in self._loans.get_all()) if f > 0]
        if not fines:
            return Decimal("0")
        return sum(fines, Decimal("0")) / len(fines)



# Demo
def build_sample_library(console: Console, name: str = DEFAULT_LIBRARY_NAME) -> Library:
    """
    Creates the sample library used by the demo.

    Loan #4 gets a return date before its loan date; the error is reported
    on the console and the loan is left out of the library.
    """
    library = Library(name)

    try:
        library.add_loan(Loan(1, "Harry Potter", "Andrii", date(2025, 11, 1), date(2025, 11, 10), Decimal("5")))
        library.add_loan(Loan(2, "1984", "Maria", date(2025, 11, 3), date(2025, 11, 8), Decimal("10")))
        library.add_loan(Loan(3, "Howl's Moving Castle", "Andrii", date(2025, 11, 5), date(2025, 11, 12), Decimal("7")))

        bad_loan = Loan(4, "Dune", "Oleh", date(2025, 11, 10), date(2025, 11, 20), Decimal("8"))
        bad_loan.set_return_date(date(2025, 11, 5))

        library.add_loan(bad_loan)
    except InvalidReturnDateError as e:
        logger.warning("Handled error | %s", e)
        console.print("=== Handled error ===", style="yellow")
        console.print(str(e), style="yellow")
    except Exception as e:
        logger.exception("Unknown error while building sample library | %s", e)
        console.print(f"Unknown error: {e}", style="red")

    for loan in library.get_all_loans():
        if loan.loan_id == 1:
            loan.set_return_date(date(2025, 11, 9))   # on time
        if loan.loan_id == 2:
            loan.set_return_date(date(2025, 11, 15))  # late
        # loan 3 stays out

    return library


def print_report(
    console: Console,
    library: Library,
    report_date: date,
    reader: str = DEFAULT_READER,
    book: str = DEFAULT_BOOK,
) -> None:
    console.print("=== All loans ===")
    for loan in library.get_all_loans():
        console.print(str(loan))
        console.print(
            f"   Overdue: {loan.get_overdue_days(report_date)} days, "
            f"fine: {money(loan.get_fine(report_date))} {CURRENCY}"
        )

    console.print()
    console.print(f"=== Overdue loans as of {report_date:%d.%m.%Y} ===")
    for loan in library.get_overdue_loans(report_date):
        console.print(
            f"{loan.book_title} for {loan.reader_name}: fine {money(loan.get_fine(report_date))} {CURRENCY}"
        )

    console.print()
    console.print(f"Total library fine: {money(library.get_total_fine(report_date))} {CURRENCY}")
    console.print(
        f"Average fine among overdue loans: "
        f"{money(library.get_average_fine_for_overdue(report_date))} {CURRENCY}"
    )

    console.print()
    console.print(f"=== Loans for reader ({reader}) ===")
    for loan in library.get_loans_by_reader(reader):
        console.print(str(loan))

    console.print()
    console.print(f"=== Loans for book (\"{book}\") ===")
    for loan in library.get_loans_by_book(book):
        console.print(str(loan))


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date (expected YYYY-MM-DD): {value!r}")


# CLI / Main
def main(argv: Optional[Sequence[str]] = None) -> None:
    """
    Main driver program that demonstrates the loan ledger.

    Demonstrated scenarios:
        - recording loans
        - rejecting a return date before the loan date
        - returning books on time and late
        - overdue days and fines per loan
        - overdue loans, total and average fine
        - filtering by reader and by book
    """
    parser = argparse.ArgumentParser(description="Library loan ledger demo.")
    parser.add_argument("--report-date", type=_parse_date, default=DEFAULT_REPORT_DATE,
                        help="Date the report is computed for (YYYY-MM-DD)")
    parser.add_argument("--reader", default=DEFAULT_READER, help="Reader name to filter by")
    parser.add_argument("--book", default=DEFAULT_BOOK, help="Book title to filter by")
    parser.add_argument("--no-wait", action="store_true", help="Exit without waiting for Enter")
    args = parser.parse_args(argv)

    console = Console(soft_wrap=True, highlight=False, markup=False)

    library = build_sample_library(console)
    print_report(console, library, args.report_date, reader=args.reader, book=args.book)

    logger.info("Report complete | library=%s loans=%d", library.name, len(library.get_all_loans()))

    if not args.no_wait:
        console.print()
        try:
            console.input("Press Enter to exit...")
        except EOFError:
            pass


if __name__ == "__main__":
    try:
        main()
    except LoanLedgerError as e:
        logger.error("LoanLedgerError bubbled to top-level | %s", e)
        raise
    except Exception as e:
        logger.exception("Unhandled fatal error | %s", e)
        raise
