"""
Sequential document numbers (PCA-00001, PCT-00001, CT-00001, INV-00001)
"""
from sqlalchemy.orm import Session


def get_next_number(db: Session, model, column, prefix: str) -> str:
    """Next number after the highest issued one for this prefix"""
    last = db.query(model).filter(
        column.like(f'{prefix}-%')
    ).order_by(model.id.desc()).first()

    if last:
        try:
            num = int(getattr(last, column.key).replace(f'{prefix}-', ''))
            return f'{prefix}-{num + 1:05d}'
        except ValueError:
            pass

    return f'{prefix}-00001'
