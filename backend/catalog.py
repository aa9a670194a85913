"""
Game catalog: the skill and job definitions every new session starts with.
"""

from typing import Dict, List

from jobs import Job, JobTier
from resources import ResourceRequirement
from skills import Skill, SkillTier


def default_skills() -> List[Skill]:
    return [
        Skill(
            skill_id="dataClean_lv1",
            name="Data Cleaning Lv.1",
            tier=SkillTier.COMMON,
            price=50,
            file_size=1.0,
            max_computing_for_100=10.0,
            max_computing_for_200=30.0,
            unlock_level=1,
            description="Tidy redundant records in virtual storage.",
        ),
        Skill(
            skill_id="dataAnalysis_lv1",
            name="Data Analysis Lv.1",
            tier=SkillTier.COMMON,
            price=80,
            file_size=1.5,
            max_computing_for_100=12.0,
            max_computing_for_200=35.0,
            unlock_level=3,
            description="Find patterns in data streams.",
        ),
        Skill(
            skill_id="aiTraining_lv1",
            name="AI Training Lv.1",
            tier=SkillTier.RARE,
            price=200,
            file_size=3.0,
            max_computing_for_100=20.0,
            max_computing_for_200=60.0,
            unlock_level=5,
            prerequisite_skill_id="dataAnalysis_lv1",
            description="Train and tune models.",
        ),
        Skill(
            skill_id="virtualDesign_lv2",
            name="Virtual Design Lv.2",
            tier=SkillTier.RARE,
            price=300,
            file_size=4.0,
            max_computing_for_100=25.0,
            max_computing_for_200=70.0,
            unlock_level=8,
            skill_level=2,
            description="Lay out virtual spaces.",
        ),
        Skill(
            skill_id="3dModeling_lv2",
            name="3D Modeling Lv.2",
            tier=SkillTier.EPIC,
            price=600,
            file_size=6.0,
            max_computing_for_100=35.0,
            max_computing_for_200=100.0,
            unlock_level=10,
            prerequisite_skill_id="virtualDesign_lv2",
            skill_level=2,
            description="Build 3D assets for virtual buildings.",
        ),
        Skill(
            skill_id="programming_lv1",
            name="Programming Lv.1",
            tier=SkillTier.EPIC,
            price=500,
            file_size=5.0,
            max_computing_for_100=30.0,
            max_computing_for_200=90.0,
            unlock_level=10,
            description="Write programs for the virtual world.",
        ),
        Skill(
            skill_id="quantumComputing_lv3",
            name="Quantum Computing Lv.3",
            tier=SkillTier.LEGENDARY,
            price=2000,
            file_size=15.0,
            max_computing_for_100=60.0,
            max_computing_for_200=180.0,
            unlock_level=25,
            prerequisite_skill_id="programming_lv1",
            skill_level=3,
            description="Design quantum algorithms.",
        ),
    ]


def default_jobs() -> List[Job]:
    return [
        Job(
            job_id="job_001",
            name="Data Cleaner",
            tier=JobTier.COMMON,
            required_skill_ids=("dataClean_lv1",),
            requirement=ResourceRequirement(memory=1.0, cpu=0.5, bandwidth=50.0, computing=5.0),
            base_salary=15,
            data_generation=0.2,
            unlock_level=1,
            description="Clean up redundant data in the virtual space.",
        ),
        Job(
            job_id="job_002",
            name="Virtual Patrol",
            tier=JobTier.COMMON,
            requirement=ResourceRequirement(memory=0.5, cpu=0.5, bandwidth=30.0, computing=3.0),
            base_salary=10,
            data_generation=0.1,
            unlock_level=1,
            description="Patrol the virtual world and keep data flowing.",
        ),
        Job(
            job_id="job_003",
            name="AI Trainer",
            tier=JobTier.RARE,
            required_skill_ids=("aiTraining_lv1", "dataAnalysis_lv1"),
            requirement=ResourceRequirement(memory=2.0, cpu=1.0, bandwidth=100.0, computing=10.0),
            base_salary=50,
            data_generation=0.4,
            unlock_level=5,
            description="Train and optimise AI models.",
        ),
        Job(
            job_id="job_004",
            name="Virtual Architect",
            tier=JobTier.EPIC,
            required_skill_ids=("virtualDesign_lv2", "3dModeling_lv2", "programming_lv1"),
            requirement=ResourceRequirement(memory=4.0, cpu=2.0, bandwidth=200.0, computing=20.0),
            base_salary=120,
            data_generation=0.8,
            unlock_level=10,
            description="Design and build structures in virtual space.",
        ),
        Job(
            job_id="job_005",
            name="Quantum Programmer",
            tier=JobTier.LEGENDARY,
            required_skill_ids=("quantumComputing_lv3", "programming_lv1"),
            requirement=ResourceRequirement(memory=8.0, cpu=4.0, bandwidth=500.0, computing=50.0),
            base_salary=350,
            data_generation=1.5,
            unlock_level=25,
            description="Develop quantum algorithms for hard problems.",
        ),
    ]


# Mood added per settlement by each housing type
HOUSING_MOOD: Dict[str, float] = {
    "capsule": 0.0,
    "apartment": 1.0,
    "villa": 3.0,
    "mansion": 10.0,
}
