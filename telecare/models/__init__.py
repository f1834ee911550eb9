from telecare.domain.auth.models import User
from telecare.domain.bookings.models import Booking
from telecare.domain.lab.models import LabTest
