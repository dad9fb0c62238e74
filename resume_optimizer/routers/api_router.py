from fastapi import APIRouter
from resume_optimizer.routers import cover_letters, optimization, optimized_resumes, uploaded_resumes

# Centralized API router hub; main.py only imports this module
api_router = APIRouter()

api_router.include_router(uploaded_resumes.router, tags=["Uploaded Resumes"])
api_router.include_router(optimization.router, tags=["Optimization"])
api_router.include_router(optimized_resumes.router, tags=["Optimized Resumes"])
api_router.include_router(cover_letters.router, tags=["Cover Letters"])
