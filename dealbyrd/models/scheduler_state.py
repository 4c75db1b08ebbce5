"""
Persisted checkpoints for the background lifecycle sweeps.
"""
from datetime import datetime
from ..extensions import db


class SchedulerState(db.Model):
    """
    Last run bookkeeping per sweep. The activate sweep derives its lookback
    window from last_successful_run_at, so this survives restarts.
    """
    __tablename__ = 'scheduler_state'

    job_name = db.Column(db.String(64), primary_key=True)
    last_successful_run_at = db.Column(db.DateTime)
    last_started_at = db.Column(db.DateTime)
    last_error = db.Column(db.Text)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @classmethod
    def get_or_create(cls, job_name: str) -> 'SchedulerState':
        state = db.session.get(cls, job_name)
        if state is None:
            state = cls(job_name=job_name)
            db.session.add(state)
            db.session.flush()
        return state

    def __repr__(self):
        return f'<SchedulerState {self.job_name} last_success={self.last_successful_run_at}>'

    def to_dict(self):
        return {
            'job_name': self.job_name,
            'last_successful_run_at': self.last_successful_run_at.isoformat() if self.last_successful_run_at else None,
            'last_started_at': self.last_started_at.isoformat() if self.last_started_at else None,
            'last_error': self.last_error
        }
