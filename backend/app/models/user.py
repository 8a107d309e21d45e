# backend/app/models/user.py
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text
from sqlalchemy.sql import func
from backend.app.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)

    # bcrypt hash, only ever compared through security/hashing.py
    hashed_password = Column(String(255), nullable=False)

    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # --- TWO-FACTOR ---
    # Secrets are AES-GCM tokens (security/crypto.py), never plaintext.
    # Confirmed secret: set iff two-factor is active
    encrypted_otp_secret = Column(Text, nullable=True)
    # Pending secret: set while enrollment awaits its first valid code
    encrypted_pending_otp_secret = Column(Text, nullable=True)

    otp_required_for_login = Column(Boolean, nullable=False, default=False)

    # Replay guard: last accepted time step
    consumed_timestep = Column(Integer, nullable=True)

    # Bumped on every two-factor update (compare-and-swap in crud/account_store.py)
    otp_version = Column(Integer, nullable=False, default=0)
