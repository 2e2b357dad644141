from fastapi import FastAPI, Depends, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
import pandas as pd
from datetime import datetime
from io import BytesIO
from typing import List, Optional
import logging
import os

from database import get_db, init_db
from schemas import (
    SignupRequest, SignupResponse, LoginRequest, Token, TokenData,
    Campaign, CampaignCreate, CampaignStatusUpdate, CampaignTotal, CampaignFinancials,
    Project, ProjectCreate, ProjectProgress, ExpenseRequest, ExpenseResult, LinkCampaignRequest,
    DonationCreate, DonationRecord, ReceiptView, DonorSummary,
)
from auth import create_access_token, get_current_user, require_staff, require_donor
from errors import register_exception_handlers
from security_middleware import (
    SecurityHeadersMiddleware,
    setup_rate_limits,
    LOGIN_RATE,
    SIGNUP_RATE,
    DONATION_RATE,
)
import identity
import campaigns
import projects
import donations

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Lifespan event handler
from contextlib import asynccontextmanager


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting NGO donation ledger...")

    # Create tables and warm up the connection pool
    init_db()

    yield

    logger.info("Shutting down NGO donation ledger")


app = FastAPI(
    title="NGO Donation Ledger",
    description="Campaigns, budgeted projects and donor receipts for staff and donors",
    version="1.0.0",
    lifespan=lifespan,
)

register_exception_handlers(app)

# Setup rate limiting
limiter = setup_rate_limits(app)

app.add_middleware(SecurityHeadersMiddleware)

ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


# ---------- Authentication ----------

@app.post("/api/auth/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(SIGNUP_RATE)
async def signup(request: Request, payload: SignupRequest, db: Session = Depends(get_db)):
    """Register a Staff or Donor account."""
    profile_id = identity.register(db, payload)
    return {
        "message": "User registered successfully!",
        "profile_id": profile_id,
        "role": payload.role,
    }


@app.post("/api/auth/login", response_model=Token)
@limiter.limit(LOGIN_RATE)
async def login(request: Request, credentials: LoginRequest, db: Session = Depends(get_db)):
    """Login endpoint with rate limiting to slow down brute force attempts."""
    user = identity.authenticate(db, credentials.email, credentials.password)
    return {
        "access_token": create_access_token(user),
        "token_type": "bearer",
        "role": user.role,
        "profile_id": user.profile_id,
    }


@app.get("/api/profile")
async def profile(user: TokenData = Depends(get_current_user)):
    return {"message": f"Welcome, {user.role.value}!", "user": user}


# ---------- Campaigns ----------

@app.get("/api/campaigns")
async def list_campaigns(user: TokenData = Depends(require_staff), db: Session = Depends(get_db)):
    result = campaigns.list_campaigns(db)
    return {"count": len(result), "campaigns": result}


@app.get("/api/campaigns/active")
async def list_active_campaigns(user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)):
    """Active campaigns for the donor dashboard."""
    return {"campaigns": campaigns.list_active(db)}


@app.get("/api/campaigns/summary")
async def campaign_summary(user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)):
    summary: List[CampaignTotal] = campaigns.raised_summary(db)
    return {"summary": summary}


@app.get("/api/campaigns/financial-summary")
async def campaign_financial_summary(user: TokenData = Depends(require_staff), db: Session = Depends(get_db)):
    """Raised total against goal for every campaign."""
    summary: List[CampaignFinancials] = campaigns.financial_summary(db)
    return {"summary": summary}


@app.get("/api/campaigns/{camp_id}", response_model=Campaign)
async def get_campaign(camp_id: str, user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)):
    return campaigns.get_campaign(db, camp_id)


@app.post("/api/campaigns", status_code=status.HTTP_201_CREATED)
async def create_campaign(
    payload: CampaignCreate,
    user: TokenData = Depends(require_staff),
    db: Session = Depends(get_db)
):
    camp_id = campaigns.create_campaign(
        db,
        name=payload.name,
        goal=payload.goal_amount,
        start=payload.start_date,
        end=payload.end_date,
        manager_id=user.profile_id,
    )
    return {"message": "Campaign created successfully!", "camp_id": camp_id}


@app.patch("/api/campaigns/{camp_id}/status")
async def update_campaign_status(
    camp_id: str,
    payload: CampaignStatusUpdate,
    user: TokenData = Depends(require_staff),
    db: Session = Depends(get_db)
):
    new_status = campaigns.set_status(db, camp_id, payload.status)
    return {
        "message": f"Campaign {camp_id} status updated to {new_status.value} successfully!",
        "camp_id": camp_id,
        "status": new_status.value,
    }


# ---------- Projects ----------

@app.get("/api/projects")
async def list_projects(user: TokenData = Depends(require_staff), db: Session = Depends(get_db)):
    result: List[Project] = projects.list_projects(db)
    return {"count": len(result), "projects": result}


@app.get("/api/projects/progress")
async def project_progress(user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)):
    """Spending against budget, visible to staff and donors."""
    result: List[ProjectProgress] = projects.progress(db)
    return {"projects": result}


@app.post("/api/projects", status_code=status.HTTP_201_CREATED)
async def create_project(
    payload: ProjectCreate,
    user: TokenData = Depends(require_staff),
    db: Session = Depends(get_db)
):
    proj_id = projects.create_project(
        db,
        name=payload.name,
        budget=payload.budget,
        start=payload.start_date,
        manager_id=user.profile_id,
        camp_id=payload.camp_id,
    )
    linked = f" and linked to Campaign {payload.camp_id}" if payload.camp_id else ""
    return {"message": f"Project created successfully{linked}!", "proj_id": proj_id}


@app.patch("/api/projects/{proj_id}/expense", response_model=ExpenseResult)
async def record_project_expense(
    proj_id: str,
    payload: ExpenseRequest,
    user: TokenData = Depends(require_staff),
    db: Session = Depends(get_db)
):
    return projects.record_expense(db, proj_id, payload.expense_amount)


@app.patch("/api/projects/{proj_id}/link-campaign")
async def link_project_campaign(
    proj_id: str,
    payload: LinkCampaignRequest,
    user: TokenData = Depends(require_staff),
    db: Session = Depends(get_db)
):
    projects.link_campaign(db, proj_id, payload.camp_id)
    return {"message": f"Project {proj_id} successfully linked to Campaign {payload.camp_id}."}


# ---------- Donations ----------

@app.post("/api/donations", status_code=status.HTTP_201_CREATED)
@limiter.limit(DONATION_RATE)
async def create_donation(
    request: Request,
    payload: DonationCreate,
    user: TokenData = Depends(require_donor),
    db: Session = Depends(get_db)
):
    don_id = donations.record_donation(
        db,
        donor_id=user.profile_id,
        camp_id=payload.camp_id,
        amount=payload.amount,
        payment_method=payload.payment_method,
    )
    return {"message": "Donation successfully recorded.", "don_id": don_id}


@app.get("/api/donations")
async def my_donations(user: TokenData = Depends(require_donor), db: Session = Depends(get_db)):
    result: List[DonationRecord] = donations.donation_history(db, user.role, user.profile_id)
    return {"donations": result}


@app.get("/api/donations/history")
async def donation_history(user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)):
    """Staff get all donations. Donors get only their own."""
    return {"history": donations.donation_history(db, user.role, user.profile_id)}


@app.get("/api/donations/export")
async def export_donations(
    format: str = Query("csv", pattern="^(csv|excel)$"),
    camp_id: Optional[str] = Query(None),
    user: TokenData = Depends(require_staff),
    db: Session = Depends(get_db)
):
    """Export the donation ledger as CSV or Excel."""
    df = pd.DataFrame(donations.export_rows(db, camp_id), columns=donations.EXPORT_COLUMNS)

    filename = f"donations_{datetime.now().strftime('%Y%m%d_%H%M%S')}.{format if format == 'csv' else 'xlsx'}"

    output = BytesIO()
    if format == "excel":
        df.to_excel(output, index=False, engine='openpyxl')
        media_type = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    else:
        df.to_csv(output, index=False)
        media_type = "text/csv"
    output.seek(0)

    return StreamingResponse(
        output,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


@app.get("/api/donations/{don_id}")
async def get_donation_receipt(don_id: str, user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)):
    """Receipt data for one donation; donors may only read their own."""
    receipt: ReceiptView = donations.get_receipt(db, don_id, user.role, user.profile_id)
    return {"donation": receipt}


# ---------- Donors ----------

@app.get("/api/donors/summary")
async def donors_summary(user: TokenData = Depends(require_staff), db: Session = Depends(get_db)):
    result: List[DonorSummary] = donations.donor_summary(db)
    return {"donors": result}


# Health check endpoint
@app.get("/health")
async def health_check():
    return {"status": "healthy", "timestamp": datetime.utcnow()}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
