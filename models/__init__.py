from .task import Task
from .task_assignee import TaskAssignee
from .project import Project, ProjectTask
from .people import Employee, Contact
from .task_dependency import TaskDependency
from .task_template import TaskTemplate, TaskWorkflowStep
