"""
Built-in seed dataset.

Used by LocalCacheSync when the Realtime Database is unreachable and the local
cache holds nothing yet. Keys are local cache keys.
"""

SEED_DATA = {
    "assignments": [
        {
            "id": "1",
            "title": "Introduction to Web Development",
            "description": "Build a small HTML page with CSS styling and basic JavaScript. Focus on responsive layout.",
            "dueDate": "2024-02-15",
            "status": "active",
            "subject": "Web Development",
            "maxScore": 100,
            "createdBy": {"uid": "staff1", "name": "Sarah Wilson", "role": "staff"},
            "createdAt": "2024-01-15T09:00:00"
        },
        {
            "id": "2",
            "title": "JavaScript Fundamentals",
            "description": "Exercises on variables, functions, arrays and objects.",
            "dueDate": "2024-02-20",
            "status": "active",
            "subject": "Programming",
            "maxScore": 100,
            "createdBy": {"uid": "staff1", "name": "Sarah Wilson", "role": "staff"},
            "createdAt": "2024-01-20T09:00:00"
        },
        {
            "id": "3",
            "title": "Database Design Principles",
            "description": "Design a normalized schema for an e-commerce system with relationships and constraints.",
            "dueDate": "2024-02-25",
            "status": "active",
            "subject": "Database Systems",
            "maxScore": 100,
            "createdBy": {"uid": "staff1", "name": "Sarah Wilson", "role": "staff"},
            "createdAt": "2024-01-25T09:00:00"
        }
    ],
    "submissions": [],
    "applications": [
        {
            "id": "app1",
            "type": "internship",
            "title": "Summer Software Development Internship",
            "description": "Twelve-week summer internship in software development.",
            "deadline": "2024-03-01",
            "status": "pending",
            "studentId": "student1",
            "submittedBy": "student1",
            "createdBy": {"uid": "student1", "name": "Alex Johnson", "role": "student"},
            "submittedAt": "2024-02-01T10:00:00"
        },
        {
            "id": "app2",
            "type": "scholarship",
            "title": "Academic Excellence Scholarship",
            "description": "Merit-based scholarship for students with a GPA of 3.8 or higher.",
            "deadline": "2024-03-15",
            "status": "under_review",
            "studentId": "student1",
            "submittedBy": "student1",
            "createdBy": {"uid": "student1", "name": "Alex Johnson", "role": "student"},
            "submittedAt": "2024-02-10T10:00:00"
        }
    ],
    "announcements": [
        {
            "id": "ann1",
            "title": "Welcome to Spring Semester 2024",
            "content": "Classes begin next week. Check your course schedules; the library keeps extended hours for the first two weeks.",
            "type": "general",
            "priority": "medium",
            "targetAudience": "all",
            "isPublished": True,
            "publishDate": "2024-01-20",
            "createdBy": {"uid": "staff1", "name": "Sarah Wilson", "role": "staff"},
            "createdAt": "2024-01-20T08:00:00",
            "readBy": []
        },
        {
            "id": "ann2",
            "title": "Career Fair Registration Now Open",
            "content": "The Spring Career Fair is on March 15th. Register now to secure your spot.",
            "type": "event",
            "priority": "high",
            "targetAudience": "student",
            "isPublished": True,
            "publishDate": "2024-01-25",
            "createdBy": {"uid": "staff1", "name": "Sarah Wilson", "role": "staff"},
            "createdAt": "2024-01-25T08:00:00",
            "readBy": []
        }
    ],
    "scheduleEvents": [
        {
            "id": "schedule1",
            "title": "Web Development Final Exam",
            "description": "Exam covering HTML, CSS, JavaScript and responsive design.",
            "date": "2024-02-28",
            "time": "14:00",
            "category": "exam",
            "location": "Room 101, Computer Science Building",
            "priority": "high",
            "createdBy": {"uid": "staff1", "name": "Sarah Wilson", "role": "staff"},
            "createdAt": "2024-01-15T08:00:00"
        },
        {
            "id": "schedule2",
            "title": "JavaScript Fundamentals Lecture",
            "description": "ES6+ features and async programming.",
            "date": "2024-02-20",
            "time": "10:00",
            "category": "lecture",
            "location": "Room 205, Engineering Building",
            "priority": "medium",
            "createdBy": {"uid": "staff1", "name": "Sarah Wilson", "role": "staff"},
            "createdAt": "2024-01-20T08:00:00"
        },
        {
            "id": "schedule3",
            "title": "Career Fair 2024",
            "description": "Annual career fair with networking and internship openings.",
            "date": "2024-03-05",
            "time": "09:00",
            "category": "event",
            "location": "Main Campus, Grand Hall",
            "priority": "high",
            "createdBy": {"uid": "staff1", "name": "Sarah Wilson", "role": "staff"},
            "createdAt": "2024-02-01T08:00:00"
        }
    ],
    "notifications": []
}
