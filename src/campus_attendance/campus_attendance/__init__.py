"""Campus Attendance package.

Feature modules (academics, enrollments, promotion) each keep their domain
models, repository interfaces and MySQL implementations side by side; Flask
controllers stay a thin layer over the services.
"""
