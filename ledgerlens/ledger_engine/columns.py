"""
Column mapper: assigns extracted amounts to their semantic slots.

Reports carry between one and four money columns per row. Right-most values
are the current-period figures, so when a row has more than four values only
the last four are used.
"""

from typing import Optional, Sequence

from ledgerlens.ledger_engine.models import ColumnValues, DocumentType


class ColumnMapper:
    """Maps an ordered list of values to initial/debit/credit/final."""

    def map(self, values: Sequence[float], document_type: Optional[DocumentType] = None) -> ColumnValues:
        """
        Map values by count.

        Args:
            values: Amounts in reading order.
            document_type: Type of the source document.

        Returns:
            ColumnValues; ``has_movement`` is set when the row itself
            supplied debit and credit columns.
        """
        values = list(values)
        count = len(values)

        if count == 0:
            return ColumnValues()

        if count == 1:
            # On income statements this is the net line amount; debit and
            # credit are derived from the nature later
            return ColumnValues(final=values[0])
        if count == 2:
            return ColumnValues(initial=values[0], final=values[1])
        if count == 3:
            return ColumnValues(
                debit=abs(values[0]),
                credit=abs(values[1]),
                final=values[2],
                has_movement=True,
            )

        initial, debit, credit, final = values[-4:]
        return ColumnValues(
            initial=initial,
            debit=abs(debit),
            credit=abs(credit),
            final=final,
            has_movement=True,
        )


# Singleton instance
_mapper_instance: Optional[ColumnMapper] = None


def get_column_mapper() -> ColumnMapper:
    """Get singleton ColumnMapper instance."""
    global _mapper_instance
    if _mapper_instance is None:
        _mapper_instance = ColumnMapper()
    return _mapper_instance
