"""Static project data served when the database is unreachable or empty."""

from typing import Any, Dict, List

FALLBACK_PROJECTS: List[Dict[str, Any]] = [
    {
        "id": 1,
        "kind": "project",
        "title": "Homeowner Loss History Prediction Project",
        "slug": "homeowner-loss-history-prediction",
        "description": (
            "Senior design project focused on predicting homeowner insurance claims "
            "using machine learning techniques."
        ),
        "summary": "Claim prediction models built with an insurance partner.",
        "long_description": (
            "Orchestrated collaboration between the Mathematics & Statistics department "
            "and an insurance company, enhancing claim predictions by 25% using Machine "
            "Learning and informing risk-based premium adjustments.\n\n"
            "Engineered end-to-end data pipelines incorporating human-in-the-loop "
            "validation and self-healing protocols."
        ),
        "completion": 75,
        "priority": "high",
        "category": "Data Science",
        "status": "in-progress",
        "start_date": "2024-08-01",
        "end_date": "2025-05-01",
        "is_featured": True,
        "image_url": "/static/img/homeowner-loss-prediction.png",
        "technologies": ["Python", "XGBoost", "Airflow"],
        "tags": ["Machine Learning", "Insurance", "Senior Design"],
        "key_achievements": [
            "Enhanced claim predictions by 25% using Machine Learning",
            "Improved model stability by 60% through self-healing protocols",
        ],
        "challenges": [
            {"description": "Developing accurate prediction models with limited historical data"},
            {"description": "Implementing human-in-the-loop validation while maintaining automation"},
        ],
        "milestones": [
            {
                "description": "Developed 5 XGBoost models with optimized EDA and feature engineering",
                "due_date": "2024-09-15",
                "completed": True,
            },
            {
                "description": "Constructed CI/CD pipeline with Bayesian optimization",
                "due_date": "2024-12-15",
                "completed": True,
            },
        ],
    },
    {
        "id": 2,
        "kind": "project",
        "title": "CubeSat Attitude Control Simulator",
        "slug": "cubesat-attitude-control-simulator",
        "description": "Reaction-wheel attitude control simulation for a 3U CubeSat.",
        "summary": "Control loop design and Monte Carlo validation.",
        "completion": 100,
        "priority": "medium",
        "category": "Aerospace",
        "status": "completed",
        "start_date": "2023-01-15",
        "end_date": "2023-06-30",
        "is_featured": True,
        "technologies": ["Python", "NumPy", "SciPy"],
        "tags": ["Controls", "Simulation"],
        "key_achievements": ["Pointing error held under 0.5 degrees in simulation"],
    },
    {
        "id": 3,
        "kind": "research",
        "title": "Variational Quantum Classifiers",
        "slug": "variational-quantum-classifiers",
        "description": "Benchmarking variational circuits against classical baselines.",
        "summary": "Quantum machine learning research.",
        "completion": 40,
        "priority": "high",
        "category": "Quantum Computing",
        "status": "in-progress",
        "start_date": "2025-01-10",
        "is_ongoing": True,
        "technologies": ["Qiskit", "PyTorch"],
        "tags": ["Quantum", "Machine Learning"],
        "resources": [
            {"name": "Qiskit tutorials", "url": "https://qiskit.org/learn"},
        ],
    },
]
